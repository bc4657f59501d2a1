"""Redaction helpers that keep secrets and personal data out of log lines.

Inbound webhook bodies, relay responses and driver errors can carry account
emails, cookie values, verify tokens or deep-link tokens. Everything that is
logged from those sources goes through ``redact_text`` or ``sanitize`` first.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_REPLACEMENT = "[REDACTED]"
_TRUNC_SUFFIX = "…(truncated)"

_SECRET_KEY_RE = re.compile(
    r"(^|_|\.)(password|passwd|pass|secret|token|verify_token|cookie|cookies|"
    r"authorization|api[_-]?key|xs|c_user)($|_)",
    flags=re.IGNORECASE,
)

_SENSITIVE_VALUE_RES: list[re.Pattern[str]] = [
    # Emails
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    # Bearer tokens
    re.compile(r"\bBearer\s+[A-Za-z0-9._\-]+", flags=re.IGNORECASE),
    # Deep-link context tokens and verify tokens in query strings
    re.compile(r"(?<=[?&]context=)[^&\s\"']+"),
    re.compile(r"(?<=hub\.verify_token=)[^&\s\"']+"),
    # key=value secrets
    re.compile(r"\b(?:password|passwd|pwd|pass)\s*[:=]\s*\S+", flags=re.IGNORECASE),
    re.compile(r"\b(?:token|secret)\s*[:=]\s*\S+", flags=re.IGNORECASE),
]


def _looks_sensitive_key(key: str) -> bool:
    return bool(_SECRET_KEY_RE.search(key))


def redact_text(text: str | None, *, max_chars: int = 2000) -> str | None:
    """Redact sensitive substrings in a text blob and truncate."""
    if text is None:
        return None

    out = text
    for rx in _SENSITIVE_VALUE_RES:
        out = rx.sub(_REPLACEMENT, out)

    if max_chars and len(out) > max_chars:
        out = out[:max_chars] + _TRUNC_SUFFIX
    return out


def mask_identity(identity: str) -> str:
    """Shorten an account identity to something recognisable but not reusable."""
    local, sep, domain = identity.partition("@")
    if not sep:
        return identity[:2] + "***" if len(identity) > 2 else "***"
    return f"{local[:2]}***@{domain}"


def sanitize(obj: Any, *, max_depth: int = 6, max_chars: int = 2000) -> Any:
    """Sanitize an object for logging.

    - Dict keys that look like secrets are redacted.
    - String values are scanned for sensitive substrings.
    - Deep structures and long sequences are truncated.
    """
    if max_depth <= 0:
        return "…"

    if obj is None or isinstance(obj, (int, float, bool)):
        return obj

    if isinstance(obj, bytes):
        return f"<bytes:{len(obj)}>"

    if isinstance(obj, str):
        return redact_text(obj, max_chars=max_chars)

    if isinstance(obj, Mapping):
        out: dict[str, Any] = {}
        for k, v in obj.items():
            ks = str(k)
            if _looks_sensitive_key(ks):
                out[ks] = _REPLACEMENT
            else:
                out[ks] = sanitize(v, max_depth=max_depth - 1, max_chars=max_chars)
        return out

    if isinstance(obj, Sequence):
        items = list(obj)
        if len(items) > 50:
            items = items[:50] + ["…"]
        return [sanitize(v, max_depth=max_depth - 1, max_chars=max_chars) for v in items]

    return redact_text(str(obj), max_chars=max_chars)
