"""Versioned memory store."""

from agentrt.memory.backend import CasOutcome, InMemoryBackend, MemoryBackend, StoredRecord
from agentrt.memory.codec import PlainCodec, ValueCodec
from agentrt.memory.store import MemoryStore

__all__ = [
    "CasOutcome",
    "InMemoryBackend",
    "MemoryBackend",
    "MemoryStore",
    "PlainCodec",
    "StoredRecord",
    "ValueCodec",
]
