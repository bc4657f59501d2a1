"""Context token codec.

A context token is the base64url encoding (unpadded) of a compact JSON
object that always carries ``publishRecordId``. Tokens travel inside deep
links, so decoding has to cope with what link wrappers and tracking
redirects do to them: trailing ``&param=...`` garbage, percent-encoding,
missing padding and outright truncation.
"""

import base64
import binascii
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

from jobrelay.enums import DecodePhase
from jobrelay.errors import DecodeError

logger = logging.getLogger(__name__)

PUBLISH_RECORD_KEY = "publishRecordId"

_TRAILING_JUNK = re.compile(r"[&#?\s].*$", re.DOTALL)
_NON_TOKEN_CHARS = re.compile(r"[^A-Za-z0-9_\-+/]")

# Tried in order against the text salvaged from a broken token.
_RECORD_ID_PATTERNS = (
    re.compile(r'"publishRecordId"\s*:\s*"([A-Za-z0-9_\-]+)"'),
    re.compile(r"publishRecordId\W{1,4}([A-Za-z0-9_\-]{8,})"),
)


@dataclass(frozen=True)
class DecodeResult:
    """A decoded context token.

    ``payload`` is the full JSON object for ``FULL`` decodes and only
    ``{"publishRecordId": ...}`` for ``PARTIAL`` ones.
    """

    phase: DecodePhase
    publish_record_id: str
    payload: dict[str, Any] = field(default_factory=dict)


def encode_context(payload: Mapping[str, Any]) -> str:
    """Encode a context payload into a URL-safe token.

    Raises:
        ValueError: If the payload has no ``publishRecordId``.
    """
    record_id = payload.get(PUBLISH_RECORD_KEY)
    if not isinstance(record_id, str) or not record_id:
        raise ValueError(f"Context payload requires a non-empty {PUBLISH_RECORD_KEY}")

    raw = json.dumps(dict(payload), separators=(",", ":"), ensure_ascii=False)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_context(token: str) -> DecodeResult:
    """Decode a context token, salvaging the record id when the token is damaged.

    Raises:
        DecodeError: If not even the record id can be recovered.
    """
    cleaned = _clean_token(token)
    if not cleaned:
        raise DecodeError("Context token is empty")

    try:
        payload = _strict_decode(cleaned)
    except ValueError as exc:
        logger.info("Context token failed strict decoding, salvaging: %s", exc)
    else:
        record_id = payload.get(PUBLISH_RECORD_KEY)
        if isinstance(record_id, str) and record_id:
            return DecodeResult(DecodePhase.FULL, record_id, payload)
        logger.info("Decoded context token has no %s", PUBLISH_RECORD_KEY)

    record_id = _salvage_record_id(cleaned)
    if record_id is None:
        raise DecodeError("Context token could not be decoded")

    logger.info("Recovered record id from a damaged context token")
    return DecodeResult(
        DecodePhase.PARTIAL, record_id, {PUBLISH_RECORD_KEY: record_id}
    )


def _clean_token(token: str | None) -> str:
    text = unquote((token or "").strip())
    text = _TRAILING_JUNK.sub("", text)
    text = _NON_TOKEN_CHARS.sub("", text)
    # Accept standard-alphabet tokens as well
    return text.replace("+", "-").replace("/", "_")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _strict_decode(cleaned: str) -> dict[str, Any]:
    try:
        raw = _b64decode(cleaned)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64: {exc}") from exc

    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("context payload is not a JSON object")
    return payload


def _salvage_record_id(cleaned: str) -> str | None:
    # Largest prefix that is a whole number of base64 quanta
    usable = cleaned[: len(cleaned) - len(cleaned) % 4]
    if not usable:
        return None
    try:
        text = _b64decode(usable).decode("utf-8", errors="ignore")
    except binascii.Error:
        return None

    for pattern in _RECORD_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None
