from sportygo.store.base import DocumentStore, ShardStream
from sportygo.store.memory import MemoryStore

__all__ = ["DocumentStore", "MemoryStore", "ShardStream"]
