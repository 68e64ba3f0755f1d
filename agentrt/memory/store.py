"""Versioned key/value memory with optimistic concurrency and access control."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from typing import Any, AsyncIterator

from loguru import logger

from agentrt.access.control import AccessControl, AllowAll, require
from agentrt.core.errors import (
    MemoryConflict,
    MemoryNotFound,
    MemoryValidationError,
)
from agentrt.core.types import (
    DiagnosticEvent,
    EventEmitter,
    MemoryEntry,
    MemoryInfo,
    Sensitivity,
    utcnow,
)
from agentrt.memory.backend import InMemoryBackend, MemoryBackend, StoredRecord
from agentrt.memory.codec import PlainCodec, ValueCodec

MAX_KEY_LENGTH = 256


def _validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key.strip():
        raise MemoryValidationError("Memory key must be a non-empty string")
    if len(key) > MAX_KEY_LENGTH:
        raise MemoryValidationError(f"Memory key exceeds {MAX_KEY_LENGTH} characters")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in key):
        raise MemoryValidationError("Memory key must not contain control characters")
    return key


class MemoryStore:
    """Owns the lifetime of memory entries.

    Every mutation is authorized first; reads are authorized when the entry's
    sensitivity is at or above ``read_gate``. Concurrent writers of the same key
    are linearized by the backend's compare-and-increment: exactly one update
    per expected version succeeds and the rest get ``MemoryConflict``. Nothing
    is retried automatically.
    """

    def __init__(
        self,
        backend: MemoryBackend | None = None,
        access: AccessControl | None = None,
        *,
        read_gate: Sensitivity = Sensitivity.CONFIDENTIAL,
        codec: ValueCodec | None = None,
        encrypt_at: Sensitivity = Sensitivity.SECRET,
        max_value_bytes: int = 256 * 1024,
        event_emitter: EventEmitter | None = None,
    ) -> None:
        self.backend = backend if backend is not None else InMemoryBackend()
        self.access = access or AllowAll()
        self.read_gate = read_gate
        self.codec = codec or PlainCodec()
        self.encrypt_at = encrypt_at
        self.max_value_bytes = max_value_bytes
        self._event_emitter = event_emitter

    def set_event_emitter(self, event_emitter: EventEmitter | None) -> None:
        self._event_emitter = event_emitter

    async def _emit(
        self,
        operation: str,
        key: str,
        identity: str,
        started: float,
        version: int | None = None,
    ) -> None:
        if not self._event_emitter:
            return
        event = DiagnosticEvent(
            name=f"memory.{operation}",
            component="memory.store",
            status="ok",
            identity=identity,
            resource=key,
            operation=operation,
            latency_ms=round((time.perf_counter() - started) * 1000, 3),
            attrs={"version": version},
        )
        try:
            await self._event_emitter(event)
        except Exception:
            return

    # ---- helpers ----

    def _check_value(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise MemoryValidationError(
                f"Value for '{key}' is not JSON-serializable: {e}",
                details={"key": key},
            ) from e
        size = len(encoded.encode("utf-8"))
        if size > self.max_value_bytes:
            raise MemoryValidationError(
                f"Value for '{key}' is {size} bytes; limit is {self.max_value_bytes}",
                details={"key": key, "size": size},
            )

    def _encode(self, key: str, value: Any, sensitivity: Sensitivity) -> Any:
        value = deepcopy(value)
        if sensitivity.at_least(self.encrypt_at):
            return self.codec.encode(key, value, sensitivity)
        return value

    def _decode(self, record: StoredRecord) -> Any:
        if record.sensitivity.at_least(self.encrypt_at):
            return self.codec.decode(record.key, record.payload, record.sensitivity)
        return deepcopy(record.payload)

    def _to_entry(self, record: StoredRecord) -> MemoryEntry:
        return MemoryEntry(
            key=record.key,
            value=self._decode(record),
            version=record.version,
            owner=record.owner,
            sensitivity=record.sensitivity,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def _can_read(self, identity: str, record: StoredRecord) -> bool:
        if not record.sensitivity.at_least(self.read_gate):
            return True
        decision = self.access.authorize(
            identity, "memory", record.key, "read", record.sensitivity
        )
        return decision.allowed

    async def _require_existing(self, key: str) -> StoredRecord:
        record = await self.backend.get(key)
        if record is None:
            raise MemoryNotFound(key)
        return record

    # ---- CRUD ----

    async def create(
        self,
        key: str,
        value: Any,
        owner: str,
        sensitivity: Sensitivity = Sensitivity.INTERNAL,
    ) -> MemoryEntry:
        """Create ``key``. Raises ``MemoryConflict`` when it already exists."""
        started = time.perf_counter()
        key = _validate_key(key)
        sensitivity = Sensitivity(sensitivity)
        require(self.access, owner, "memory", key, "create", sensitivity)
        self._check_value(key, value)

        now = utcnow()
        record = StoredRecord(
            key=key,
            payload=self._encode(key, value, sensitivity),
            version=0,
            owner=owner,
            sensitivity=sensitivity,
            created_at=now,
            updated_at=now,
        )
        outcome = await self.backend.compare_and_increment(key, None, record)
        if not outcome.ok:
            raise MemoryConflict(
                key,
                f"Memory key '{key}' already exists",
                actual_version=outcome.current_version,
            )
        logger.debug("Memory {} created at v{} by {}", key, outcome.record.version, owner)
        await self._emit("create", key, owner, started, outcome.record.version)
        return self._to_entry(outcome.record)

    async def read(self, key: str, *, identity: str = "anonymous") -> MemoryEntry:
        """Return the current entry. Raises ``MemoryNotFound`` when absent."""
        started = time.perf_counter()
        record = await self._require_existing(key)
        if record.sensitivity.at_least(self.read_gate):
            require(self.access, identity, "memory", key, "read", record.sensitivity)
        await self._emit("read", key, identity, started, record.version)
        return self._to_entry(record)

    async def update(
        self,
        key: str,
        expected_version: int,
        new_value: Any,
        *,
        identity: str = "anonymous",
    ) -> MemoryEntry:
        """Replace the value when ``expected_version`` is current, bumping the version."""
        started = time.perf_counter()
        record = await self._require_existing(key)
        # Versions never repeat across delete and recreate, so matching here
        # pins the authorization below to the lifecycle the write will hit.
        if record.version != expected_version:
            raise _version_conflict(key, expected_version, record.version)
        require(self.access, identity, "memory", key, "update", record.sensitivity)
        self._check_value(key, new_value)

        candidate = StoredRecord(
            key=key,
            payload=self._encode(key, new_value, record.sensitivity),
            version=record.version,
            owner=record.owner,
            sensitivity=record.sensitivity,
            created_at=record.created_at,
            updated_at=utcnow(),
        )
        outcome = await self.backend.compare_and_increment(key, expected_version, candidate)
        if not outcome.ok:
            if outcome.record is None:
                raise MemoryNotFound(key)
            raise _version_conflict(key, expected_version, outcome.current_version)
        logger.debug("Memory {} updated to v{} by {}", key, outcome.record.version, identity)
        await self._emit("update", key, identity, started, outcome.record.version)
        return self._to_entry(outcome.record)

    async def delete(
        self,
        key: str,
        expected_version: int | None = None,
        *,
        identity: str = "anonymous",
    ) -> int:
        """Hard-delete ``key`` and return the version it had when removed.

        Without ``expected_version`` the delete is still pinned to the version
        that was authorized, so a concurrent recreate is never removed.
        """
        started = time.perf_counter()
        record = await self._require_existing(key)
        if expected_version is not None and record.version != expected_version:
            raise _version_conflict(key, expected_version, record.version)
        require(self.access, identity, "memory", key, "delete", record.sensitivity)

        outcome = await self.backend.delete(key, record.version)
        if not outcome.ok:
            if outcome.record is None:
                raise MemoryNotFound(key)
            raise _version_conflict(key, record.version, outcome.current_version)
        logger.debug("Memory {} deleted at v{} by {}", key, outcome.record.version, identity)
        await self._emit("delete", key, identity, started, outcome.record.version)
        return outcome.record.version

    async def list(
        self, prefix: str | None = None, *, identity: str = "anonymous"
    ) -> AsyncIterator[MemoryInfo]:
        """Lazily yield metadata for keys under ``prefix`` that ``identity`` may read."""
        for key in await self.backend.keys(prefix):
            record = await self.backend.get(key)
            if record is None:
                continue
            if not self._can_read(identity, record):
                logger.debug("Memory list skipped {} for {}", key, identity)
                continue
            yield MemoryInfo(
                key=record.key,
                version=record.version,
                owner=record.owner,
                sensitivity=record.sensitivity,
                updated_at=record.updated_at,
            )

    async def read_many(
        self, keys: list[str], *, identity: str = "anonymous"
    ) -> dict[str, Any]:
        """Values for the keys that exist and are readable by ``identity``."""
        values: dict[str, Any] = {}
        for key in keys:
            record = await self.backend.get(key)
            if record is None or not self._can_read(identity, record):
                continue
            values[key] = self._decode(record)
        return values

    async def version_of(self, key: str) -> int:
        """Highest version ever assigned to ``key`` (0 if never created)."""
        return await self.backend.last_version(key)


def _version_conflict(key: str, expected: int | None, actual: int | None) -> MemoryConflict:
    return MemoryConflict(
        key,
        f"Version conflict on '{key}': expected v{expected}, found v{actual}",
        expected_version=expected,
        actual_version=actual,
    )
