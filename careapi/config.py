import os

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "1" if default else "0").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return bool(default)


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./careflow.db")
    DB_AUTO_CREATE_ALL = _get_bool("DB_AUTO_CREATE_ALL", True)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

    DEFAULT_ESTIMATED_DURATION = _get_int("DEFAULT_ESTIMATED_DURATION", 60)
    LIST_LIMIT_MAX = _get_int("LIST_LIMIT_MAX", 1000)

    MAINTENANCE_MODE = _get_bool("MAINTENANCE_MODE", False)
    MAINTENANCE_READ_ONLY = _get_bool("MAINTENANCE_READ_ONLY", False)
    MAINTENANCE_RETRY_AFTER_SECONDS = _get_int("MAINTENANCE_RETRY_AFTER_SECONDS", 120)

    SECURITY_HEADERS_ENABLED = _get_bool("SECURITY_HEADERS_ENABLED", True)


settings = Settings()
