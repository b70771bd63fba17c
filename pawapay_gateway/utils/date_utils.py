"""Date and time helpers for signatures and records"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time, timezone-aware UTC"""
    return datetime.now(timezone.utc)


def epoch_seconds(moment: datetime) -> int:
    """Whole seconds since the Unix epoch (floor)"""
    return int(moment.timestamp())


def iso_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and Z suffix, e.g. 2024-05-01T10:00:00.123Z"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
