"""Core utilities for the contentgate application."""

from contentgate.app.core.config import settings
from contentgate.app.core.logging import get_logger, setup_logging
from contentgate.app.core.kv_store import (
    InMemoryKVStore,
    KVStore,
    RedisKVStore,
    StoreBackend,
    get_kv_store,
    reset_kv_store,
)

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "KVStore",
    "InMemoryKVStore",
    "RedisKVStore",
    "StoreBackend",
    "get_kv_store",
    "reset_kv_store",
]
