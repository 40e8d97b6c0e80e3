import os

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        return float(raw)
    except ValueError:
        return float(default)


def _get_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class Settings:
    API_BASE_URL = os.getenv("CAREFLOW_API_BASE_URL", "http://127.0.0.1:8000").strip().rstrip("/")
    API_TIMEOUT = _get_float("CAREFLOW_API_TIMEOUT", 10.0)
    # Issued by the external auth layer; sent as a bearer token when present.
    API_TOKEN = os.getenv("CAREFLOW_API_TOKEN", "").strip()
    STAFF_ID = _get_optional_int("CAREFLOW_STAFF_ID")

    DEFAULT_ESTIMATED_DURATION = _get_int("DEFAULT_ESTIMATED_DURATION", 60)
    UPCOMING_WINDOW_DAYS = _get_int("UPCOMING_WINDOW_DAYS", 7)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


settings = Settings()
