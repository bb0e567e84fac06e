"""Timezone handling for day and hour bucketing.

Stored timestamps are naive UTC (datetime.utcnow). Every bucketing step goes
through an explicit zone so results do not depend on the host's local time.
"""
from datetime import date, datetime, timezone, tzinfo
from typing import Optional


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive timestamps; convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_local(moment: datetime, tz: tzinfo) -> datetime:
    return as_utc(moment).astimezone(tz)


def to_local_date(moment: datetime, tz: tzinfo) -> date:
    """Calendar date of a timestamp in tz."""
    return to_local(moment, tz).date()


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Aware 'now' in UTC, honouring an injected reference time."""
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)
