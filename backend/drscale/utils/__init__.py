"""Shared timestamp helpers. Timestamps are stored as ISO-8601 strings in UTC."""
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat()


def parse_ts(value: str) -> datetime:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def is_expired(expires_at: str, now: datetime = None) -> bool:
    """An invite expires at ``expires_at``; it is valid only while expires_at > now."""
    now = now or utc_now()
    return parse_ts(expires_at) <= now
