from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from django.utils import timezone

COMPLETED = 'completed'
OVERDUE = 'overdue'
DUE_TODAY = 'due-today'
UPCOMING = 'upcoming'


def local_today(now: Optional[datetime] = None) -> date:
    """Calendar day in the configured time zone, never the UTC day."""
    return timezone.localdate(now) if now is not None else timezone.localdate()


def local_day(value: Optional[datetime]) -> Optional[date]:
    if value is None:
        return None
    return timezone.localtime(value).date()


def days_between(earlier: Optional[date], later: date) -> int:
    if earlier is None:
        return 0
    return max(0, (later - earlier).days)


def classify(target: Optional[date], today: date, *, completed: bool = False) -> str:
    if completed:
        return COMPLETED
    if target is not None and target < today:
        return OVERDUE
    if target is None or target == today:
        return DUE_TODAY
    return UPCOMING


def parse_iso_date(raw) -> date:
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), '%Y-%m-%d').date()
    except ValueError as exc:
        raise ValueError('invalid date format, expected YYYY-MM-DD') from exc
