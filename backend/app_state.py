"""Backend configuration and application state."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from services import MemoryService
from storage import MemoryStore


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class AppConfig:
    """Explicit configuration for one backend process."""

    memory_path: Optional[Path] = None
    max_memories: int = 1000
    retrain_every: int = 10
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if env is None else env
        memory_path = (env.get("INKWELL_MEMORY_PATH") or "").strip()
        return cls(
            memory_path=Path(memory_path) if memory_path else None,
            max_memories=_int_env(env, "INKWELL_MAX_MEMORIES", 1000),
            retrain_every=_int_env(env, "INKWELL_RETRAIN_EVERY", 10),
            log_level=(env.get("INKWELL_LOG_LEVEL") or "INFO").upper(),
            host=env.get("INKWELL_HOST") or "127.0.0.1",
            port=_int_env(env, "INKWELL_PORT", 8000),
        )


class AppState:
    """Holds the configuration and the session-scoped memory service."""

    def __init__(self, config: Optional[AppConfig] = None):
        self._lock = threading.RLock()
        self.config = config or AppConfig()
        self._memory = self._build_memory(self.config)

    @property
    def memory(self) -> MemoryService:
        with self._lock:
            return self._memory

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def reload(self, config: Optional[AppConfig] = None) -> MemoryService:
        """Rebuild services from `config` (or the current one), dropping in-memory state."""
        with self._lock:
            if config is not None:
                self.config = config
            self._memory = self._build_memory(self.config)
            return self._memory

    @staticmethod
    def _build_memory(config: AppConfig) -> MemoryService:
        store = MemoryStore(config.memory_path) if config.memory_path else None
        return MemoryService(
            store=store,
            max_memories=config.max_memories,
            retrain_every=config.retrain_every,
        )
