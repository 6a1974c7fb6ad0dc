from models.progress import CardProgress, CardState

MASTERED_STABILITY = 21.0


def mastery_status(progress: CardProgress) -> str:
    if progress is None or progress.state == CardState.NEW:
        return "new"
    if progress.state == CardState.REVIEW and progress.stability > MASTERED_STABILITY:
        return "mastered"
    return "learning"


def mastery_percent(mastered: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round((mastered / total) * 100, 1)
