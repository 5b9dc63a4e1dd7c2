from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


class SettingsError(ValueError):
    pass


def _number(name: str, default: str, cast, *, minimum: float | None = None):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{name} must be a {cast.__name__}, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise SettingsError(f"{name} must be >= {minimum}, got {value}")
    return value


def _choice(name: str, default: str, allowed: set[str]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        raise SettingsError(f"{name} must be one of {sorted(allowed)}, got {value!r}")
    return value


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    data_dir: str = "data"
    store: str = "file"
    heartbeat_interval_s: float = 10.0
    queue_max_retries: int = 3
    message_max_age_s: float = 600.0
    execution_timeout_s: float = 300.0
    vector_store: str = "numpy"
    embedding_model: str | None = None
    memory_max_tokens: int = 20000

    @property
    def flows_dir(self) -> Path:
        return Path(self.data_dir) / "flows"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=_number("API_PORT", "8000", int, minimum=1),
            log_level=os.getenv("API_LOG_LEVEL", "info"),
            data_dir=os.getenv("CODE_READER_DATA_DIR", "data"),
            store=_choice("CODE_READER_STORE", "file", {"file", "memory"}),
            heartbeat_interval_s=_number("CODE_READER_HEARTBEAT_INTERVAL_S", "10", float, minimum=0.001),
            queue_max_retries=_number("CODE_READER_QUEUE_MAX_RETRIES", "3", int, minimum=1),
            message_max_age_s=_number("CODE_READER_MESSAGE_MAX_AGE_S", "600", float, minimum=0),
            execution_timeout_s=_number("CODE_READER_EXECUTION_TIMEOUT_S", "300", float, minimum=0.001),
            vector_store=_choice("CODE_READER_VECTOR_STORE", "numpy", {"numpy", "faiss"}),
            embedding_model=os.getenv("CODE_READER_EMBEDDING_MODEL") or None,
            memory_max_tokens=_number("CODE_READER_MEMORY_MAX_TOKENS", "20000", int, minimum=1),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
