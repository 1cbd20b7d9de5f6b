import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent
DEFAULT_HISTORY_DB = BACKEND_ROOT / "data" / "history.db"


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.SEARCH_DEBOUNCE_MS: int = _as_int(os.getenv("SEARCH_DEBOUNCE_MS"), 500)
        self.SEARCH_MIN_QUERY_LENGTH: int = _as_int(os.getenv("SEARCH_MIN_QUERY_LENGTH"), 2)
        self.SEARCH_RESULT_LIMIT: int = _as_int(os.getenv("SEARCH_RESULT_LIMIT"), 5)
        self.HISTORY_MAX_ENTRIES: int = _as_int(os.getenv("HISTORY_MAX_ENTRIES"), 10)

        self.NOMINATIM_SEARCH_URL: str = os.getenv(
            "NOMINATIM_SEARCH_URL", "https://nominatim.openstreetmap.org/search"
        )
        self.NOMINATIM_USER_AGENT: str | None = os.getenv("NOMINATIM_USER_AGENT")
        self.NOMINATIM_REFERER: str | None = os.getenv("NOMINATIM_REFERER")
        self.NOMINATIM_TIMEOUT_SECONDS: float = _as_float(
            os.getenv("NOMINATIM_TIMEOUT_SECONDS"), 5.0
        )

        self.HISTORY_DATABASE_URL: str = os.getenv(
            "HISTORY_DATABASE_URL", f"sqlite:///{DEFAULT_HISTORY_DB}"
        )
        self.HISTORY_AUDIT_ENABLED: bool = _as_bool(os.getenv("HISTORY_AUDIT_ENABLED"), False)
        self.HISTORY_AUDIT_URL: str = os.getenv(
            "HISTORY_AUDIT_URL", "http://localhost:5000/history"
        )
        self.HISTORY_AUDIT_TIMEOUT_SECONDS: float = _as_float(
            os.getenv("HISTORY_AUDIT_TIMEOUT_SECONDS"), 5.0
        )

    @property
    def debounce_seconds(self) -> float:
        return self.SEARCH_DEBOUNCE_MS / 1000.0


settings = Settings()
