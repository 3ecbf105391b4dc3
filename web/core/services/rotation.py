from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar

import structlog
from django.conf import settings
from django.db import transaction
from django.db.models import Case, F, Value, When

from ..dates import classify, local_today
from ..models import Discipline, ScheduleItem, StudySchedule, Topic

logger = structlog.get_logger(__name__)

T = TypeVar('T')


class RotationError(Exception):
    pass


class EmptyTopicPoolError(RotationError):
    pass


class InvalidAvailabilityError(RotationError):
    pass


class UnsatisfiableScheduleError(RotationError):
    def __init__(self, message: str, *, unplaced: int = 0):
        super().__init__(message)
        self.unplaced = unplaced


class StaleScheduleItemError(RotationError):
    pass


@dataclass(frozen=True)
class RotationConfig:
    max_days: int


@dataclass(frozen=True)
class RotationPlan(Generic[T]):
    assignments: list[tuple[T, date]]
    start_date: date
    duration_weeks: int

    @property
    def last_date(self) -> date:
        return self.assignments[-1][1]


def get_rotation_config() -> RotationConfig:
    cfg = getattr(settings, 'ROTATION_DEFAULTS', {})
    return RotationConfig(max_days=cfg.get('max_days', 1000))


def normalise_availability(raw: Mapping[Any, Any]) -> dict[int, int]:
    """Validate a weekday -> capacity mapping (0=Monday .. 6=Sunday)."""
    if not isinstance(raw, Mapping):
        raise InvalidAvailabilityError('availability must map weekdays to capacities')
    availability: dict[int, int] = {}
    for key, value in raw.items():
        try:
            weekday = int(key)
            capacity = int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidAvailabilityError(f'invalid availability entry {key!r}: {value!r}') from exc
        if weekday not in range(7):
            raise InvalidAvailabilityError(f'weekday must be 0..6, got {weekday}')
        if capacity < 0:
            raise InvalidAvailabilityError(f'capacity for weekday {weekday} must not be negative')
        availability[weekday] = capacity
    return availability


def duration_in_weeks(start_date: date, last_date: date) -> int:
    span_days = (last_date - start_date).days + 1
    return max(1, math.ceil(span_days / 7))


def plan_rotation(
    topics: Sequence[T],
    availability: Mapping[Any, Any],
    start_date: date,
    *,
    max_days: Optional[int] = None,
) -> RotationPlan[T]:
    """Assign topics to study days in pool order, filling each available day up to its capacity."""
    if not topics:
        raise EmptyTopicPoolError('no topics found')
    capacities = normalise_availability(availability)
    if not any(capacities.values()):
        raise UnsatisfiableScheduleError('no weekday has a positive capacity', unplaced=len(topics))
    max_days = max_days if max_days is not None else get_rotation_config().max_days

    assignments: list[tuple[T, date]] = []
    pending = list(topics)
    current = start_date
    for _ in range(max_days):
        if not pending:
            break
        capacity = capacities.get(current.weekday(), 0)
        if capacity:
            batch, pending = pending[:capacity], pending[capacity:]
            assignments.extend((topic, current) for topic in batch)
        current += timedelta(days=1)

    if pending:
        raise UnsatisfiableScheduleError(
            f'{len(pending)} topics could not be placed within {max_days} days',
            unplaced=len(pending),
        )
    return RotationPlan(
        assignments=assignments,
        start_date=start_date,
        duration_weeks=duration_in_weeks(start_date, assignments[-1][1]),
    )


def discipline_topics(discipline: Discipline):
    return Topic.objects.filter(subdiscipline__discipline=discipline).order_by('id')


@transaction.atomic
def generate_schedule(
    *,
    user,
    discipline: Discipline,
    availability: Mapping[Any, Any],
    start_date: date,
    replace: Optional[StudySchedule] = None,
    max_days: Optional[int] = None,
) -> StudySchedule:
    """Create a rotation schedule, optionally replacing an existing one.

    Completed items of ``replace`` are moved onto the new schedule untouched and
    their topics are left out of the generated pool.
    """
    completed_ids: list = []
    if replace is not None:
        replace = StudySchedule.objects.select_for_update().get(pk=replace.pk, user=user)
        completed_ids = list(
            replace.items.filter(status=ScheduleItem.STATUS_COMPLETED).values_list('id', flat=True)
        )
    completed_topic_ids = set(
        ScheduleItem.objects.filter(id__in=completed_ids).values_list('topic_id', flat=True)
    )
    pool = [topic for topic in discipline_topics(discipline) if topic.id not in completed_topic_ids]
    capacities = normalise_availability(availability)
    plan = plan_rotation(pool, capacities, start_date, max_days=max_days)

    schedule = StudySchedule.objects.create(
        user=user,
        rotation_discipline=discipline,
        start_date=start_date,
        duration_weeks=plan.duration_weeks,
        availability={str(day): capacity for day, capacity in sorted(capacities.items())},
    )
    if replace is not None:
        ScheduleItem.objects.filter(id__in=completed_ids).update(schedule=schedule)
        replace.delete()
    ScheduleItem.objects.bulk_create(
        [
            ScheduleItem(schedule=schedule, topic=topic, study_date=study_date)
            for topic, study_date in plan.assignments
        ]
    )
    logger.info(
        'rotation_schedule_generated',
        user_id=user.pk,
        schedule_id=str(schedule.id),
        discipline_id=discipline.pk,
        replaced=str(replace.pk) if replace is not None else None,
        items=len(plan.assignments),
        kept_completed=len(completed_ids),
        duration_weeks=plan.duration_weeks,
    )
    return schedule


def recalculate_schedule(
    schedule: StudySchedule,
    *,
    availability: Optional[Mapping[Any, Any]] = None,
    start_date: Optional[date] = None,
) -> StudySchedule:
    return generate_schedule(
        user=schedule.user,
        discipline=schedule.rotation_discipline,
        availability=availability if availability is not None else schedule.availability_map(),
        start_date=start_date or schedule.start_date,
        replace=schedule,
    )


def _versioned_update(item: ScheduleItem, expected_version: Optional[int], **changes) -> ScheduleItem:
    qs = ScheduleItem.objects.filter(pk=item.pk)
    if expected_version is not None:
        qs = qs.filter(version=expected_version)
    updated = qs.update(version=F('version') + 1, **changes)
    if not updated:
        logger.warning(
            'schedule_item_stale',
            item_id=str(item.pk),
            expected_version=expected_version,
        )
        raise StaleScheduleItemError('schedule item was changed elsewhere; reload and retry')
    item.refresh_from_db()
    return item


def move_item(item: ScheduleItem, new_date: date, *, expected_version: Optional[int] = None) -> ScheduleItem:
    # Manual moves ignore day capacity.
    previous = item.study_date
    item = _versioned_update(item, expected_version, study_date=new_date)
    logger.info('schedule_item_moved', item_id=str(item.pk), from_date=previous.isoformat(), to_date=new_date.isoformat())
    return item


def toggle_item_status(item: ScheduleItem, *, expected_version: Optional[int] = None) -> ScheduleItem:
    # Flipped by the database against the stored status.
    flipped = Case(
        When(status=ScheduleItem.STATUS_COMPLETED, then=Value(ScheduleItem.STATUS_PENDING)),
        default=Value(ScheduleItem.STATUS_COMPLETED),
    )
    item = _versioned_update(item, expected_version, status=flipped)
    logger.info('schedule_item_toggled', item_id=str(item.pk), status=item.status)
    return item


def schedule_progress(schedule: StudySchedule) -> int:
    total = schedule.items.count()
    if not total:
        return 0
    completed = schedule.items.filter(status=ScheduleItem.STATUS_COMPLETED).count()
    return round(completed * 100 / total)


def classify_item(item: ScheduleItem, today: Optional[date] = None) -> str:
    return classify(item.study_date, today or local_today(), completed=item.is_completed)
