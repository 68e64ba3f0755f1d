"""Observability helpers for diagnostic events and redaction."""

from agentrt.observability.logging_sink import JsonlLoggingSink
from agentrt.observability.redaction import REDACTED, Redactor, redact_payload

__all__ = ["JsonlLoggingSink", "REDACTED", "Redactor", "redact_payload"]
