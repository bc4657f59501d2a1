"""Time helpers.

All persisted timestamps are naive UTC, matching the ``DateTime`` columns.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def epoch_millis(moment: datetime | None = None) -> int:
    """Milliseconds since the epoch for a naive UTC datetime."""
    moment = moment or utcnow()
    return int(moment.replace(tzinfo=UTC).timestamp() * 1000)
