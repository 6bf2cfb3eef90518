"""Runtime configuration for the storefront (toggleable during tests/runtime)."""
import os
from typing import NamedTuple

BACKENDS = ("memory", "database")


class ConfigState(NamedTuple):
    storage_backend: str
    database_url: str
    jwt_secret: str
    session_secret: str
    seed_data: bool
    log_level: str
    host: str
    port: int


def _flag(value: str) -> bool:
    return value.lower() in ("1", "true", "yes", "on")


def from_env() -> ConfigState:
    backend = os.getenv("STORAGE_BACKEND", "memory").lower()
    if backend not in BACKENDS:
        raise ValueError(f"unknown STORAGE_BACKEND {backend!r}; expected one of {', '.join(BACKENDS)}")
    return ConfigState(
        storage_backend=backend,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./agrofix.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        session_secret=os.getenv("SESSION_SECRET", "session-secret"),
        seed_data=_flag(os.getenv("SEED_DATA", "1")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


state = from_env()


def configure(**overrides) -> ConfigState:
    global state
    state = state._replace(**overrides)
    return state


def use_database() -> bool:
    return state.storage_backend == "database"
