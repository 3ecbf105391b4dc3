from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from ..dates import days_between, local_day, local_today
from ..fsrs import (
    QUALITY_BY_DIFFICULTY,
    ReviewResult,
    State,
    calculate_next_review,
    card_memory_state,
)
from ..models import Discipline, ErrorEntry, FlashcardReview, StudySession, UserSettings, UserStudyStats
from .settings import load_settings

logger = structlog.get_logger(__name__)

DIFFICULTIES = ('easy', 'hard', 'wrong')

CARD_FIELDS = (
    'interval',
    'stability',
    'difficulty',
    'state',
    'lapses',
    'review_count',
    'last_reviewed_at',
    'next_review_date',
)
SESSION_FIELDS = (
    'position',
    'streak',
    'cards_studied',
    'cards_easy',
    'cards_hard',
    'cards_wrong',
    'xp_earned',
)


class ReviewError(Exception):
    pass


class NothingToUndoError(ReviewError):
    pass


class SessionClosedError(ReviewError):
    pass


class CardNotCurrentError(ReviewError):
    pass


def get_xp_rewards() -> dict[str, int]:
    rewards = {
        'easy': 15,
        'hard': 10,
        'wrong': 5,
        'streak_bonus': 5,
        'streak_bonus_cap': 10,
        'session_complete': 50,
    }
    rewards.update(getattr(settings, 'REVIEW_XP', {}))
    return rewards


def rating_xp(difficulty: str, streak: int, rewards: Optional[dict[str, int]] = None) -> int:
    rewards = rewards or get_xp_rewards()
    xp = rewards[difficulty]
    if difficulty != 'wrong':
        xp += min(streak, rewards['streak_bonus_cap']) * rewards['streak_bonus']
    return xp


def _serialize_card(card: ErrorEntry) -> dict[str, Any]:
    return {
        'interval': card.interval,
        'stability': card.stability,
        'difficulty': card.difficulty,
        'state': card.state,
        'lapses': card.lapses,
        'review_count': card.review_count,
        'last_reviewed_at': card.last_reviewed_at.isoformat() if card.last_reviewed_at else None,
        'next_review_date': card.next_review_date.isoformat() if card.next_review_date else None,
    }


def _restore_card(card: ErrorEntry, snapshot: dict[str, Any]) -> None:
    card.interval = int(snapshot.get('interval') or 0)
    card.stability = snapshot.get('stability')
    card.difficulty = snapshot.get('difficulty')
    card.state = snapshot.get('state')
    card.lapses = int(snapshot.get('lapses') or 0)
    card.review_count = int(snapshot.get('review_count') or 0)
    last_reviewed = snapshot.get('last_reviewed_at')
    card.last_reviewed_at = datetime.fromisoformat(last_reviewed) if last_reviewed else None
    next_review = snapshot.get('next_review_date')
    card.next_review_date = date.fromisoformat(next_review) if next_review else None
    card.save(update_fields=[*CARD_FIELDS, 'updated_at'])


def _serialize_session(session: StudySession) -> dict[str, int]:
    return {name: getattr(session, name) for name in SESSION_FIELDS}


def _restore_session(session: StudySession, snapshot: dict[str, int]) -> None:
    for name in SESSION_FIELDS:
        setattr(session, name, int(snapshot.get(name, getattr(session, name))))
    session.save(update_fields=list(SESSION_FIELDS))


@dataclass
class RatingContext:
    session: StudySession
    card: ErrorEntry
    difficulty: str
    now: datetime
    settings_obj: Optional[UserSettings] = None
    xp: int = 0
    review_id: Optional[str] = None
    result: Optional[ReviewResult] = None
    card_before: dict[str, Any] = field(default_factory=dict)
    session_before: dict[str, int] = field(default_factory=dict)

    def to_snapshot(self) -> dict[str, Any]:
        return {
            'card_id': str(self.card.id),
            'review_id': self.review_id,
            'difficulty': self.difficulty,
            'card': self.card_before,
            'session': self.session_before,
        }

    @classmethod
    def from_snapshot(cls, session: StudySession, card: ErrorEntry, snapshot: dict[str, Any]) -> 'RatingContext':
        return cls(
            session=session,
            card=card,
            difficulty=snapshot.get('difficulty', ''),
            now=timezone.now(),
            review_id=snapshot.get('review_id'),
            card_before=snapshot.get('card') or {},
            session_before=snapshot.get('session') or {},
        )


@dataclass(frozen=True)
class PipelineStage:
    name: str
    apply: Callable[[RatingContext], None]
    rollback: Callable[[RatingContext], None]


def _record_event(ctx: RatingContext) -> None:
    ctx.xp = rating_xp(ctx.difficulty, ctx.session.streak)
    review = FlashcardReview.objects.create(
        user=ctx.session.user,
        flashcard=ctx.card,
        session=ctx.session,
        difficulty=ctx.difficulty,
        xp_earned=ctx.xp,
        reviewed_at=ctx.now,
    )
    ctx.review_id = str(review.id)


def _delete_event(ctx: RatingContext) -> None:
    if ctx.review_id:
        FlashcardReview.objects.filter(id=ctx.review_id, user=ctx.session.user).delete()


def _update_card(ctx: RatingContext) -> None:
    card = ctx.card
    ctx.card_before = _serialize_card(card)
    settings_obj = ctx.settings_obj or load_settings(ctx.session.user)
    today = local_today(ctx.now)
    memory = card_memory_state(card)
    result = calculate_next_review(
        QUALITY_BY_DIFFICULTY[ctx.difficulty],
        memory.stability,
        memory.difficulty,
        memory.state,
        days_between(local_day(card.last_reviewed_at), today),
        settings_obj.fsrs_retention,
        settings_obj.weights(),
    )
    card.stability = result.stability
    card.difficulty = result.difficulty
    card.state = int(result.state)
    card.interval = result.interval
    if ctx.difficulty == 'wrong':
        card.lapses += 1
    card.review_count += 1
    card.last_reviewed_at = ctx.now
    card.next_review_date = today + timedelta(days=result.interval)
    card.save(update_fields=[*CARD_FIELDS, 'updated_at'])
    ctx.result = result


def _restore_card_state(ctx: RatingContext) -> None:
    _restore_card(ctx.card, ctx.card_before)


def _advance_session(ctx: RatingContext) -> None:
    session = ctx.session
    ctx.session_before = _serialize_session(session)
    session.streak = 0 if ctx.difficulty == 'wrong' else session.streak + 1
    session.cards_studied += 1
    setattr(session, f'cards_{ctx.difficulty}', getattr(session, f'cards_{ctx.difficulty}') + 1)
    session.xp_earned += ctx.xp
    session.position += 1
    session.save(update_fields=list(SESSION_FIELDS))


def _rewind_session(ctx: RatingContext) -> None:
    _restore_session(ctx.session, ctx.session_before)


# The event insert runs first so an undo always has a review id to delete.
RATING_PIPELINE: tuple[PipelineStage, ...] = (
    PipelineStage('record_event', _record_event, _delete_event),
    PipelineStage('update_card', _update_card, _restore_card_state),
    PipelineStage('advance_session', _advance_session, _rewind_session),
)


@dataclass(frozen=True)
class RatingOutcome:
    session: StudySession
    card: ErrorEntry
    review_id: str
    xp: int
    result: ReviewResult


def due_cards(user, *, discipline: Optional[Discipline] = None, today: Optional[date] = None):
    today = today or local_today()
    qs = ErrorEntry.objects.for_user(user).filter(
        Q(next_review_date__isnull=True) | Q(next_review_date__lte=today)
    )
    if discipline is not None:
        qs = qs.filter(discipline=discipline)
    return qs.order_by(F('next_review_date').asc(nulls_first=True), 'created_at')


def start_session(
    user,
    *,
    discipline: Optional[Discipline] = None,
    today: Optional[date] = None,
    card_ids: Optional[Iterable] = None,
) -> StudySession:
    if card_ids is None:
        queue = [str(card_id) for card_id in due_cards(user, discipline=discipline, today=today).values_list('id', flat=True)]
    else:
        requested = [str(card_id) for card_id in card_ids]
        owned = {
            str(card_id)
            for card_id in ErrorEntry.objects.for_user(user).filter(id__in=requested).values_list('id', flat=True)
        }
        queue = [card_id for card_id in requested if card_id in owned]
    session = StudySession.objects.create(user=user, discipline=discipline, queue=queue)
    logger.info('study_session_started', user_id=user.pk, session_id=str(session.id), queue_size=len(queue))
    return session


def rate_card(
    session: StudySession,
    card_id,
    difficulty: str,
    *,
    now: Optional[datetime] = None,
    settings_obj: Optional[UserSettings] = None,
) -> RatingOutcome:
    if difficulty not in DIFFICULTIES:
        raise ValueError('difficulty must be one of easy, hard, wrong')
    now = now or timezone.now()
    with transaction.atomic():
        session = StudySession.objects.select_for_update().get(pk=session.pk)
        if session.completed_at is not None:
            raise SessionClosedError('session already completed')
        card = ErrorEntry.objects.select_for_update().get(id=card_id, user=session.user)
        if str(card.id) != session.current_card_id:
            raise CardNotCurrentError('card is not the current card of this session')
        ctx = RatingContext(session=session, card=card, difficulty=difficulty, now=now, settings_obj=settings_obj)
        for stage in RATING_PIPELINE:
            stage.apply(ctx)
        # A new rating discards the previous undo point.
        session.undo_snapshot = ctx.to_snapshot()
        session.save(update_fields=['undo_snapshot'])

    logger.info(
        'card_rated',
        user_id=session.user_id,
        session_id=str(session.id),
        card_id=str(card.id),
        difficulty=difficulty,
        interval=ctx.result.interval,
        stability=ctx.result.stability,
        state=int(ctx.result.state),
        xp=ctx.xp,
    )
    return RatingOutcome(session=session, card=card, review_id=ctx.review_id, xp=ctx.xp, result=ctx.result)


def undo_last_rating(session: StudySession) -> tuple[StudySession, ErrorEntry]:
    with transaction.atomic():
        session = StudySession.objects.select_for_update().get(pk=session.pk)
        snapshot = session.undo_snapshot
        if not snapshot:
            raise NothingToUndoError('nothing to undo')
        card = ErrorEntry.objects.select_for_update().get(id=snapshot['card_id'], user=session.user)
        ctx = RatingContext.from_snapshot(session, card, snapshot)
        for stage in reversed(RATING_PIPELINE):
            stage.rollback(ctx)
        session.undo_snapshot = None
        session.save(update_fields=['undo_snapshot'])

    logger.info(
        'rating_undone',
        user_id=session.user_id,
        session_id=str(session.id),
        card_id=str(card.id),
        review_id=snapshot.get('review_id'),
    )
    return session, card


def complete_session(session: StudySession, *, now: Optional[datetime] = None) -> StudySession:
    now = now or timezone.now()
    today = local_today(now)
    rewards = get_xp_rewards()
    with transaction.atomic():
        session = StudySession.objects.select_for_update().get(pk=session.pk)
        if session.completed_at is not None:
            raise SessionClosedError('session already completed')
        session.xp_earned += rewards['session_complete']
        session.completed_at = now
        session.undo_snapshot = None
        session.save(update_fields=['xp_earned', 'completed_at', 'undo_snapshot'])

        stats, _ = UserStudyStats.objects.select_for_update().get_or_create(user=session.user)
        if stats.last_study_date == today - timedelta(days=1):
            stats.current_streak += 1
        elif stats.last_study_date != today:
            stats.current_streak = 1
        stats.longest_streak = max(stats.longest_streak, stats.current_streak)
        stats.last_study_date = today
        stats.total_xp += session.xp_earned
        stats.total_cards_reviewed += session.cards_studied
        stats.save()

    logger.info(
        'study_session_completed',
        user_id=session.user_id,
        session_id=str(session.id),
        cards_studied=session.cards_studied,
        xp=session.xp_earned,
        streak=stats.current_streak,
    )
    return session


def upcoming_review_counts(user, *, today: Optional[date] = None, days: int = 7) -> list[dict[str, Any]]:
    """Cards due per day for the next ``days`` days; today also counts overdue and unscheduled cards."""
    today = today or local_today()
    end = today + timedelta(days=days - 1)
    entries = ErrorEntry.objects.for_user(user)
    due_now = entries.filter(Q(next_review_date__isnull=True) | Q(next_review_date__lte=today)).count()
    rows = (
        entries.filter(next_review_date__gt=today, next_review_date__lte=end)
        .values('next_review_date')
        .annotate(count=Count('id'))
    )
    by_day = {row['next_review_date']: row['count'] for row in rows}
    counts = []
    for offset in range(days):
        day = today + timedelta(days=offset)
        counts.append({
            'date': day.isoformat(),
            'count': due_now if offset == 0 else by_day.get(day, 0),
            'is_today': offset == 0,
        })
    return counts


def reset_progress(user, card_ids: Iterable) -> int:
    """Send cards back to New; their review history is kept."""
    updated = ErrorEntry.objects.for_user(user).filter(id__in=list(card_ids)).update(
        state=State.NEW,
        interval=0,
        stability=0,
        difficulty=0,
        lapses=0,
        review_count=0,
        next_review_date=None,
        last_reviewed_at=None,
        updated_at=timezone.now(),
    )
    logger.info('card_progress_reset', user_id=user.pk, count=updated)
    return updated


def build_rating_previews(
    card: ErrorEntry,
    *,
    settings_obj: Optional[UserSettings] = None,
    today: Optional[date] = None,
) -> dict[str, dict[str, Any]]:
    settings_obj = settings_obj or load_settings(card.user)
    today = today or local_today()
    memory = card_memory_state(card)
    elapsed = days_between(local_day(card.last_reviewed_at), today)
    previews: dict[str, dict[str, Any]] = {}
    for difficulty in DIFFICULTIES:
        result = calculate_next_review(
            QUALITY_BY_DIFFICULTY[difficulty],
            memory.stability,
            memory.difficulty,
            memory.state,
            elapsed,
            settings_obj.fsrs_retention,
            settings_obj.weights(),
        )
        previews[difficulty] = {
            'interval': result.interval,
            'due_date': (today + timedelta(days=result.interval)).isoformat(),
            'humanized': _humanize_interval(result.interval),
        }
    return previews


def _humanize_interval(days: int) -> str:
    if days < 7:
        return f"{days} d"
    weeks = days // 7
    if weeks < 8:
        return f"{weeks} w"
    months = days // 30
    if months < 18:
        return f"{months} mo"
    years = days // 365
    return f"{years} y"
