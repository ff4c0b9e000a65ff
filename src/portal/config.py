import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple


DEFAULT_PORT = 3000
DEFAULT_ALLOWED_ORIGIN = "http://localhost:3000"


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{name}'. "
            "Set it in the environment or the service .env file."
        )
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{name}' must be a number, got {raw!r}") from exc


def _split_origins(value: str) -> Tuple[str, ...]:
    origins: List[str] = [o.strip() for o in value.split(",") if o.strip()]
    return tuple(origins) or (DEFAULT_ALLOWED_ORIGIN,)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the portal service."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    allowed_origins: Tuple[str, ...] = (DEFAULT_ALLOWED_ORIGIN,)
    database_url: Optional[str] = None
    db_host: Optional[str] = None
    db_port: int = 5432
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_name: Optional[str] = None
    db_pool_min: int = 1
    db_pool_max: int = 10
    db_connect_attempts: int = 5
    db_connect_delay: float = 1.0
    upload_dir: Path = Path("uploads")
    log_level: str = "INFO"


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Read settings from environment variables.

    Database credentials are only required when ``DATABASE_URL`` is unset.
    """
    database_url = os.getenv("DATABASE_URL") or None
    if database_url:
        db_host = os.getenv("DB_HOST")
        db_user = os.getenv("DB_USER")
        db_password = os.getenv("DB_PASSWORD")
        db_name = os.getenv("DB_NAME")
    else:
        db_host = _required_env("DB_HOST")
        db_user = _required_env("DB_USER")
        db_password = _required_env("DB_PASSWORD")
        db_name = _required_env("DB_NAME")

    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", DEFAULT_PORT),
        allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGIN", DEFAULT_ALLOWED_ORIGIN)),
        database_url=database_url,
        db_host=db_host,
        db_port=_int_env("DB_PORT", 5432),
        db_user=db_user,
        db_password=db_password,
        db_name=db_name,
        db_pool_min=_int_env("DB_POOL_MIN", 1),
        db_pool_max=_int_env("DB_POOL_MAX", 10),
        db_connect_attempts=max(1, _int_env("DB_CONNECT_ATTEMPTS", 5)),
        db_connect_delay=_float_env("DB_CONNECT_DELAY", 1.0),
        upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")).expanduser(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
