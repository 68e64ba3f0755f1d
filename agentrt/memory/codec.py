"""Pluggable value codec for encryption-at-rest of sensitive memory entries."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from agentrt.core.types import Sensitivity


@runtime_checkable
class ValueCodec(Protocol):
    """Transforms values on their way into and out of the backend.

    Implementations wrap whatever encryption scheme a deployment uses. The
    store relies only on ``decode(encode(v)) == v``.
    """

    def encode(self, key: str, value: Any, sensitivity: Sensitivity) -> Any: ...

    def decode(self, key: str, payload: Any, sensitivity: Sensitivity) -> Any: ...


class PlainCodec:
    """Identity codec."""

    def encode(self, key: str, value: Any, sensitivity: Sensitivity) -> Any:
        return value

    def decode(self, key: str, payload: Any, sensitivity: Sensitivity) -> Any:
        return payload
