"""JSONL sink for diagnostic events."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from agentrt.core.types import DiagnosticEvent
from agentrt.observability.redaction import Redactor

if TYPE_CHECKING:
    from agentrt.config.schema import ObservabilityConfig


class JsonlLoggingSink:
    """Append-only JSONL file of diagnostic events, rotated by size.

    A sink is an async callable taking a ``DiagnosticEvent``, so it can be
    handed directly to the engine, memory store or aggregator as their
    ``event_emitter``. Every event is redacted before it touches disk.

    Rotation keeps ``events.jsonl.1`` (newest) up to ``events.jsonl.N``
    (oldest); ``query`` reads them oldest first, then the live file.
    """

    def __init__(
        self,
        path: Path,
        rotate_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 3,
        *,
        redactor: Redactor | None = None,
    ) -> None:
        self.path = Path(path)
        self.rotate_bytes = rotate_bytes
        self.max_backups = max(0, max_backups)
        self.redactor = redactor or Redactor()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: ObservabilityConfig) -> JsonlLoggingSink | None:
        """Build a sink for ``config.diagnostics_path``, or None when unset."""
        if config.diagnostics_file is None:
            return None
        return cls(
            config.diagnostics_file,
            rotate_bytes=config.rotate_bytes,
            max_backups=config.max_backups,
        )

    async def __call__(self, event: DiagnosticEvent) -> None:
        await self.emit(event)

    async def emit(self, event: DiagnosticEvent | dict[str, Any]) -> None:
        """Redact and append one event."""
        record = event.to_dict() if isinstance(event, DiagnosticEvent) else dict(event)
        data = json.dumps(self.redactor.redact(record), ensure_ascii=False, default=str)
        async with self._lock:
            await asyncio.to_thread(self._write, (data + "\n").encode("utf-8"))

    # ---- file handling (runs in a worker thread) ----

    def _write(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            size = 0
        if size and size + len(data) > self.rotate_bytes:
            self._rotate()
        with self.path.open("ab") as handle:
            handle.write(data)

    def backup_path(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}.{index}")

    def _rotate(self) -> None:
        if not self.max_backups:
            self.path.unlink(missing_ok=True)
            return
        # Shift .N-1 -> .N ... .1 -> .2; the oldest is overwritten.
        for index in reversed(range(1, self.max_backups)):
            older = self.backup_path(index)
            if older.exists():
                older.replace(self.backup_path(index + 1))
        self.path.replace(self.backup_path(1))

    def files(self) -> list[Path]:
        """Existing log files, oldest first."""
        candidates = [self.backup_path(i) for i in range(self.max_backups, 0, -1)]
        candidates.append(self.path)
        return [p for p in candidates if p.exists()]

    def _read_events(self) -> Iterator[dict[str, Any]]:
        for path in self.files():
            with path.open(encoding="utf-8") as handle:
                for raw in handle:
                    if not raw.strip():
                        continue
                    try:
                        event = json.loads(raw)
                    except json.JSONDecodeError:
                        continue
                    if isinstance(event, dict):
                        yield event

    # ---- reading ----

    def query(
        self,
        *,
        request_id: str | None = None,
        component: str | None = None,
        name_prefix: str | None = None,
        identity: str | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Return the newest ``limit`` events matching every given filter, oldest first."""
        if limit <= 0:
            return []
        exact = {
            "request_id": request_id,
            "component": component,
            "identity": identity,
            "status": status,
        }
        wanted = {k: v for k, v in exact.items() if v is not None}

        window: deque[dict[str, Any]] = deque(maxlen=limit)
        for event in self._read_events():
            if any(event.get(k) != v for k, v in wanted.items()):
                continue
            if name_prefix and not str(event.get("name", "")).startswith(name_prefix):
                continue
            window.append(event)
        return list(window)
