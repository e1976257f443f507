"""Session and OAuth state storage."""

from bucketview.session.store import (
    SESSIONS_NAMESPACE,
    STATES_NAMESPACE,
    KVStore,
    MemoryKVStore,
    RedisKVStore,
    create_kv_stores,
)

__all__ = [
    "KVStore",
    "MemoryKVStore",
    "RedisKVStore",
    "SESSIONS_NAMESPACE",
    "STATES_NAMESPACE",
    "create_kv_stores",
]
