class HablaError(Exception):
    """Base class for errors raised by lesson and song logic."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(HablaError):
    """A referenced card, song or lesson item does not exist."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} {identifier} not found"
        super().__init__(message, {"resource": resource, "id": identifier})


class ValidationError(HablaError):
    """Input is out of range or inconsistent with the lesson state."""


class StaleSessionError(HablaError):
    """No active lesson for the user; the client should start a new one."""

    def __init__(self, message: str = "No active lesson", redirect: str = "/lesson/start"):
        super().__init__(message, {"redirect": redirect})
        self.redirect = redirect


class StorageError(HablaError):
    """The database rejected a write; the step was rolled back."""


class EnrichmentUnavailable(HablaError):
    """Text generation or lyric lookup is disabled or failed."""
