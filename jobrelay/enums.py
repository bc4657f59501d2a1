"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class PublishStatus(StrEnum):
    """Publish record status values."""

    PENDING = "PENDING"
    POSTING = "POSTING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PostingState(StrEnum):
    """States of the per-destination posting state machine."""

    NAVIGATING = "navigating"
    STABLE_CHECK = "stable_check"
    COMPOSING = "composing"
    TYPING = "typing"
    SUBMITTING = "submitting"
    VERIFYING = "verifying"
    DONE = "done"
    CRASHED = "crashed"
    RECOVERING = "recovering"


class DecodePhase(StrEnum):
    """How far context token decoding got."""

    FULL = "full"
    PARTIAL = "partial"
    FAILED = "failed"


class DeepLinkStatus(StrEnum):
    """Outcome of resolving a deep-link token."""

    RESOLVED = "resolved"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    CLOSED = "closed"


class RelayEventType(StrEnum):
    """Payload types sent to the downstream conversational webhook."""

    CONTEXT_TRIGGER = "messenger_context_trigger"
    REFERRAL = "messenger_referral"
    MESSAGE = "messenger_message"


class RunStatus(StrEnum):
    """Per-account publish run status."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
