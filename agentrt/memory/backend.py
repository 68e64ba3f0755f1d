"""Persistence primitive for the memory store.

A backend only needs get, atomic compare-and-increment, versioned delete and
key listing. Version numbers are assigned by the backend inside the atomic
step so two writers can never both win the same expected version.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from agentrt.core.types import Sensitivity


@dataclass(frozen=True, slots=True)
class StoredRecord:
    """Backend-level row. ``payload`` is the codec-encoded value."""

    key: str
    payload: Any
    version: int
    owner: str
    sensitivity: Sensitivity
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class CasOutcome:
    """Result of a compare-and-increment or versioned delete."""

    ok: bool
    record: StoredRecord | None = None

    @property
    def current_version(self) -> int | None:
        return self.record.version if self.record else None


@runtime_checkable
class MemoryBackend(Protocol):
    async def get(self, key: str) -> StoredRecord | None: ...

    async def compare_and_increment(
        self, key: str, expected_version: int | None, record: StoredRecord
    ) -> CasOutcome:
        """Write ``record`` with version = current + 1 if the stored version matches.

        ``expected_version=None`` means the key must not exist (create). An
        update replaces only ``payload`` and ``updated_at``; owner, sensitivity
        and ``created_at`` stay those of the stored row.
        On failure ``CasOutcome.record`` holds the current row, if any.
        """
        ...

    async def delete(self, key: str, expected_version: int | None) -> CasOutcome: ...

    async def keys(self, prefix: str | None = None) -> list[str]: ...

    async def last_version(self, key: str) -> int:
        """Highest version ever assigned to ``key``, including deleted lifecycles."""
        ...


class InMemoryBackend:
    """Dict-backed backend.

    Compare and write happen with no suspension point in between, so each
    operation is atomic with respect to other coroutines on the same loop.
    Deleted keys leave a tombstone holding their last version so that a
    recreated key continues the sequence. Tombstones are never pruned: one
    int per distinct key ever deleted, which is what lets a stale version
    from an earlier lifecycle always conflict.
    """

    def __init__(self) -> None:
        self._rows: dict[str, StoredRecord] = {}
        self._tombstones: dict[str, int] = {}

    async def get(self, key: str) -> StoredRecord | None:
        return self._rows.get(key)

    async def compare_and_increment(
        self, key: str, expected_version: int | None, record: StoredRecord
    ) -> CasOutcome:
        current = self._rows.get(key)
        if expected_version is None:
            if current is not None:
                return CasOutcome(ok=False, record=current)
            stored = replace(record, version=self._tombstones.get(key, 0) + 1)
        else:
            if current is None or current.version != expected_version:
                return CasOutcome(ok=False, record=current)
            stored = replace(
                current,
                payload=record.payload,
                updated_at=record.updated_at,
                version=current.version + 1,
            )
        self._rows[key] = stored
        return CasOutcome(ok=True, record=stored)

    async def delete(self, key: str, expected_version: int | None) -> CasOutcome:
        current = self._rows.get(key)
        if current is None:
            return CasOutcome(ok=False)
        if expected_version is not None and current.version != expected_version:
            return CasOutcome(ok=False, record=current)
        del self._rows[key]
        self._tombstones[key] = current.version
        return CasOutcome(ok=True, record=current)

    async def keys(self, prefix: str | None = None) -> list[str]:
        return sorted(k for k in self._rows if prefix is None or k.startswith(prefix))

    async def last_version(self, key: str) -> int:
        current = self._rows.get(key)
        if current is not None:
            return current.version
        return self._tombstones.get(key, 0)

    def __len__(self) -> int:
        return len(self._rows)
