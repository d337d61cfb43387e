from datetime import datetime, timedelta, timezone

TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def advance(previous: datetime, now: datetime) -> datetime:
    """``now``, bumped past ``previous`` so ``updatedAt`` strictly advances."""
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now if now > previous else previous + TICK
