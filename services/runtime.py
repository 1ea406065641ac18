"""Process-wide wiring of cache, store, gateway and pool tracker."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from config.registry import TEXT_GEN_KEY, get_model
from config.settings import Settings, settings
from llm_gateway import generate_text
from observability.perf import PerformanceLog
from storage.document_store import DocumentStore, SqliteDocumentStore
from storage.gateway import DocumentGateway
from storage.migrate import migrate
from storage.ttl_cache import TtlCache

from .pool import ResourcePoolTracker

TextGenerator = Callable[..., str]


@dataclass
class Runtime:
    settings: Settings
    cache: TtlCache
    gateway: DocumentGateway
    pool: ResourcePoolTracker
    perf: PerformanceLog

    def text_generator(self) -> TextGenerator:
        """Return the bound text-generation callable, defaulting to the HTTP gateway."""
        try:
            return get_model(TEXT_GEN_KEY)
        except KeyError:
            return generate_text


def build_runtime(cfg: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> Runtime:
    cfg = cfg or settings
    if store is None:
        migrate(cfg.DB_PATH)
        store = SqliteDocumentStore(cfg.DB_PATH, timeout_s=cfg.STORE_TIMEOUT_S)
    cache = TtlCache(cfg.CACHE_DEFAULT_TTL_S, sweep_interval=cfg.CACHE_SWEEP_INTERVAL_S)
    gateway = DocumentGateway(store, cache)
    return Runtime(
        settings=cfg,
        cache=cache,
        gateway=gateway,
        pool=ResourcePoolTracker(gateway, cfg),
        perf=PerformanceLog(gateway),
    )


_RUNTIME: Optional[Runtime] = None
_RUNTIME_GUARD = threading.Lock()


def get_runtime() -> Runtime:
    global _RUNTIME
    with _RUNTIME_GUARD:
        if _RUNTIME is None:
            _RUNTIME = build_runtime()
        return _RUNTIME


def reset_runtime() -> None:
    """Drop the process runtime, stopping its sweeper; the next call rebuilds it."""

    global _RUNTIME
    with _RUNTIME_GUARD:
        if _RUNTIME is not None:
            _RUNTIME.cache.stop_sweeper()
        _RUNTIME = None


__all__ = ["Runtime", "TextGenerator", "build_runtime", "get_runtime", "reset_runtime"]
