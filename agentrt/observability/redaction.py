"""Sanitization of context slices and diagnostic payloads."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Iterable

REDACTED = "***REDACTED***"

SENSITIVE_KEYWORDS = frozenset(
    {
        "token",
        "secret",
        "password",
        "passwd",
        "api_key",
        "apikey",
        "authorization",
        "cookie",
        "sessionid",
        "private_key",
        "credential",
    }
)

# Substrings replaced wherever they appear in a string value.
SECRET_PATTERNS: dict[str, re.Pattern[str]] = {
    "openai_key": re.compile(r"\bsk-[A-Za-z0-9]{8,}\b"),
    "slack_token": re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b"),
    "github_token": re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"),
    "aws_access_key": re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    "private_key_block": re.compile(
        r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]*?-----END [A-Z ]*PRIVATE KEY-----"
    ),
}

_BEARER = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._\-]+\b")
_EMAIL = re.compile(r"\b([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")


def _first_char_masked(part: str) -> str:
    return f"{part[0]}***" if part else "***"


def mask_email(address: re.Match[str]) -> str:
    """``alice@example.com`` -> ``a***@e***.com``."""
    user, domain = address.group(1), address.group(2)
    host, dot, tld = domain.partition(".")
    return f"{_first_char_masked(user)}@{_first_char_masked(host)}{dot}{tld}"


class Redactor:
    """Returns redacted copies of JSON-like values.

    Values under a key containing any sensitive keyword are replaced
    wholesale. Other strings have bearer tokens, known secret formats and
    (optionally) email addresses masked in place. Inputs are never mutated.
    """

    def __init__(
        self,
        *,
        extra_keywords: Iterable[str] = (),
        extra_patterns: Mapping[str, re.Pattern[str]] | None = None,
        mask_emails: bool = True,
    ) -> None:
        self.keywords = SENSITIVE_KEYWORDS | {k.lower() for k in extra_keywords}
        self.patterns = {**SECRET_PATTERNS, **(extra_patterns or {})}
        self.mask_emails = mask_emails

    def is_sensitive_key(self, key: Any) -> bool:
        if not isinstance(key, str) or not key:
            return False
        normalized = key.lower().replace("-", "_")
        return any(word in normalized for word in self.keywords)

    def redact_text(self, text: str) -> str:
        if self.mask_emails:
            text = _EMAIL.sub(mask_email, text)
        text = _BEARER.sub(f"Bearer {REDACTED}", text)
        for pattern in self.patterns.values():
            text = pattern.sub(REDACTED, text)
        return text

    def redact(self, value: Any, key: Any = None) -> Any:
        if self.is_sensitive_key(key):
            return REDACTED
        if isinstance(value, str):
            return self.redact_text(value)
        if isinstance(value, Mapping):
            return {k: self.redact(v, str(k)) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            items = [self.redact(item, key) for item in value]
            return items if isinstance(value, list) else tuple(items)
        return value


_default = Redactor()


def redact_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Redacted copy of ``payload`` using the default rules."""
    return _default.redact(payload)
