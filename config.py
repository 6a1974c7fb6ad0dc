import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".habla"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"


def _env_bool(name: str, default: Any) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes", "on")


def load_config() -> Dict[str, Any]:
    """Load config from ~/.habla/config.toml, copy example if missing, apply env overrides."""
    load_dotenv()  # .env may carry DB_PATH, PORT, OLLAMA_MODEL, ...
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    server_cfg = config.get("server", {})
    config["server"] = {
        "host": os.getenv("HOST", server_cfg.get("host", "127.0.0.1")),
        "port": int(os.getenv("PORT", server_cfg.get("port", 8080))),
        "log_level": os.getenv("LOG_LEVEL", server_cfg.get("log_level", "INFO")).upper(),
    }
    database_cfg = config.get("database", {})
    config["database"] = {
        "path": os.getenv("DB_PATH", database_cfg.get("path", str(CONFIG_DIR / "habla.db"))),
    }
    songs_cfg = config.get("songs", {})
    config["songs"] = {
        "path": os.getenv("SONGS_PATH", songs_cfg.get("path", "./songs")),
    }
    lesson_cfg = config.get("lesson", {})
    config["lesson"] = {
        "target_retention": float(os.getenv(
            "TARGET_RETENTION", lesson_cfg.get("target_retention", 0.9)
        )),
        "seed_per_day": _env_bool("LESSON_SEED_PER_DAY", lesson_cfg.get("seed_per_day", True)),
        "practice_size": int(os.getenv("PRACTICE_SIZE", lesson_cfg.get("practice_size", 20))),
    }
    ollama_cfg = config.get("ollama", {})
    config["ollama"] = {
        "enabled": _env_bool("OLLAMA_ENABLED", ollama_cfg.get("enabled", False)),
        "model": os.getenv("OLLAMA_MODEL", ollama_cfg.get("model", "llama3.2")),
        "timeout": int(os.getenv("OLLAMA_TIMEOUT", ollama_cfg.get("timeout", 20))),
    }
    grading_cfg = config.get("grading", {})
    config["grading"] = {
        "levenshtein_perfect_threshold": float(os.getenv(
            "LEVENSHTEIN_PERFECT_THRESHOLD",
            grading_cfg.get("levenshtein_perfect_threshold", 0.98),
        )),
        "levenshtein_good_threshold": float(os.getenv(
            "LEVENSHTEIN_GOOD_THRESHOLD",
            grading_cfg.get("levenshtein_good_threshold", 0.85),
        )),
    }
    lyrics_cfg = config.get("lyrics", {})
    config["lyrics"] = {
        "base_url": os.getenv("LRCLIB_URL", lyrics_cfg.get("base_url", "https://lrclib.net/api/get")),
        "timeout": int(os.getenv("LRCLIB_TIMEOUT", lyrics_cfg.get("timeout", 10))),
    }
    return config


def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('ollama', 'model')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value
