from __future__ import annotations

from datetime import datetime, timedelta

from .models import ExpiryReason, PasteRecord


def is_time_expired(record: PasteRecord, now: datetime) -> bool:
    """True once ``now`` is strictly past the record's ``expires_at``."""
    return record.expires_at is not None and now > record.expires_at


def is_view_exhausted(record: PasteRecord) -> bool:
    """
    True when a view limit exists and was already reached.

    Checked before incrementing, so a request arriving after a concurrent
    request consumed the final view is rejected.
    """
    return record.max_views is not None and record.view_count >= record.max_views


def is_last_view(record: PasteRecord, post_increment_count: int) -> bool:
    """True when the view that produced ``post_increment_count`` was the final one."""
    return record.max_views is not None and post_increment_count >= record.max_views


def compute_expiry(now: datetime, hours_from_now: int | None) -> datetime | None:
    if hours_from_now is None:
        return None
    return now + timedelta(hours=hours_from_now)


def expiry_reason(record: PasteRecord, now: datetime) -> ExpiryReason | None:
    """
    Return why ``record`` can no longer be served, or ``None`` if it is live.

    Time is checked before views; both are terminal.
    """
    if is_time_expired(record, now):
        return ExpiryReason.TIME
    if is_view_exhausted(record):
        return ExpiryReason.VIEWS
    return None
