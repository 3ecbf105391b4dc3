from datetime import datetime, timedelta

import pytest
from django.utils import timezone

from core.models import ErrorEntry, FlashcardReview, UserStudyStats
from core.services.review import (
    CardNotCurrentError,
    NothingToUndoError,
    SessionClosedError,
    build_rating_previews,
    complete_session,
    due_cards,
    rate_card,
    reset_progress,
    start_session,
    undo_last_rating,
    upcoming_review_counts,
)

pytestmark = pytest.mark.django_db

NOW = timezone.make_aware(datetime(2025, 3, 3, 10, 0))
TODAY = NOW.date()

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


def _snapshot(card):
    card.refresh_from_db()
    return {name: getattr(card, name) for name in CARD_FIELDS}


def test_due_cards_order_and_filters(user_factory, error_entry_factory, discipline_factory):
    user = user_factory()
    discipline = discipline_factory()
    overdue = error_entry_factory(user=user, discipline=discipline, next_review_date=TODAY - timedelta(days=3))
    fresh = error_entry_factory(user=user, discipline=discipline, next_review_date=None)
    due = error_entry_factory(user=user, next_review_date=TODAY)
    error_entry_factory(user=user, next_review_date=TODAY + timedelta(days=1))
    error_entry_factory(next_review_date=None)

    assert list(due_cards(user, today=TODAY)) == [fresh, overdue, due]
    assert list(due_cards(user, discipline=discipline, today=TODAY)) == [fresh, overdue]


def test_start_session_queues_due_cards(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(user=user)
    foreign = error_entry_factory()

    session = start_session(user, today=TODAY)
    assert session.queue == [str(card.id)]
    assert session.current_card_id == str(card.id)

    picked = start_session(user, card_ids=[foreign.id, card.id])
    assert picked.queue == [str(card.id)]


def test_rating_new_card_easy(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(user=user)
    session = start_session(user, today=TODAY)

    outcome = rate_card(session, card.id, 'easy', now=NOW)

    card.refresh_from_db()
    assert card.state == ErrorEntry.STATE_REVIEW
    assert card.interval == 8
    assert card.next_review_date == TODAY + timedelta(days=8)
    assert card.review_count == 1
    assert card.lapses == 0
    assert card.last_reviewed_at == NOW
    assert outcome.xp == 15
    assert outcome.session.position == 1
    assert outcome.session.streak == 1
    assert outcome.session.cards_easy == 1
    review = FlashcardReview.objects.get(id=outcome.review_id)
    assert review.difficulty == 'easy'
    assert review.session_id == session.id


def test_streak_bonus_and_wrong_answers(user_factory, error_entry_factory):
    user = user_factory()
    for _ in range(3):
        error_entry_factory(user=user)
    session = start_session(user, today=TODAY)
    first, second, third = session.queue

    assert rate_card(session, first, 'easy', now=NOW).xp == 15
    assert rate_card(session, second, 'hard', now=NOW).xp == 15
    wrong = rate_card(session, third, 'wrong', now=NOW)

    assert wrong.xp == 5
    assert wrong.session.streak == 0
    assert wrong.session.xp_earned == 35
    assert wrong.session.cards_studied == 3
    wrong_card = ErrorEntry.objects.get(id=third)
    assert wrong_card.lapses == 1
    assert wrong_card.interval == 1
    assert wrong_card.state == ErrorEntry.STATE_LEARNING


def test_legacy_card_is_reviewed_from_its_interval(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(
        user=user,
        interval=10,
        stability=None,
        state=None,
        last_reviewed_at=NOW - timedelta(days=10),
        next_review_date=TODAY,
    )
    session = start_session(user, today=TODAY)

    rate_card(session, card.id, 'easy', now=NOW)

    card.refresh_from_db()
    assert card.state == ErrorEntry.STATE_REVIEW
    assert card.stability > 10
    assert card.interval > 10


def test_undo_restores_card_session_and_history(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(
        user=user,
        interval=5,
        stability=5.0,
        difficulty=6.2,
        state=ErrorEntry.STATE_REVIEW,
        review_count=4,
        lapses=1,
        last_reviewed_at=NOW - timedelta(days=5, hours=3),
        next_review_date=TODAY,
    )
    warmup = start_session(user, today=TODAY)
    rate_card(warmup, card.id, 'easy', now=NOW - timedelta(minutes=5))
    other = error_entry_factory(user=user)
    session = start_session(user, card_ids=[other.id, card.id])
    rate_card(session, other.id, 'hard', now=NOW - timedelta(minutes=1))
    before_card = _snapshot(card)
    session.refresh_from_db()
    before_session = (session.position, session.streak, session.xp_earned, session.cards_studied, session.cards_wrong)
    reviews_before = FlashcardReview.objects.count()

    rate_card(session, card.id, 'wrong', now=NOW)
    undone_session, undone_card = undo_last_rating(session)

    assert _snapshot(undone_card) == before_card
    assert (
        undone_session.position,
        undone_session.streak,
        undone_session.xp_earned,
        undone_session.cards_studied,
        undone_session.cards_wrong,
    ) == before_session
    assert FlashcardReview.objects.count() == reviews_before
    assert undone_session.undo_snapshot is None
    assert undone_session.current_card_id == str(card.id)

    with pytest.raises(NothingToUndoError):
        undo_last_rating(session)


def test_undo_of_first_rating_returns_card_to_new(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(user=user)
    before = _snapshot(card)
    session = start_session(user, today=TODAY)

    rate_card(session, card.id, 'hard', now=NOW)
    undo_last_rating(session)

    assert _snapshot(card) == before
    assert not FlashcardReview.objects.filter(flashcard=card).exists()


def test_undo_is_single_level(user_factory, error_entry_factory):
    user = user_factory()
    first, second = error_entry_factory(user=user), error_entry_factory(user=user)
    session = start_session(user, card_ids=[first.id, second.id])
    rate_card(session, first.id, 'easy', now=NOW)
    rate_card(session, second.id, 'easy', now=NOW)

    session, _ = undo_last_rating(session)

    first.refresh_from_db()
    second.refresh_from_db()
    assert first.review_count == 1
    assert second.review_count == 0
    assert session.current_card_id == str(second.id)
    with pytest.raises(NothingToUndoError):
        undo_last_rating(session)


def test_rating_guards(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(user=user)
    foreign = error_entry_factory()
    session = start_session(user, today=TODAY)

    with pytest.raises(ValueError):
        rate_card(session, card.id, 'good', now=NOW)
    with pytest.raises(ErrorEntry.DoesNotExist):
        rate_card(session, foreign.id, 'easy', now=NOW)
    assert not FlashcardReview.objects.exists()

    complete_session(session, now=NOW)
    with pytest.raises(SessionClosedError):
        rate_card(session, card.id, 'easy', now=NOW)


def test_complete_session_updates_streaks(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(user=user)
    UserStudyStats.objects.filter(user=user).update(
        current_streak=3, longest_streak=3, last_study_date=TODAY - timedelta(days=1)
    )
    session = start_session(user, today=TODAY)
    rate_card(session, card.id, 'easy', now=NOW)

    session = complete_session(session, now=NOW)

    stats = UserStudyStats.objects.get(user=user)
    assert session.completed_at == NOW
    assert session.xp_earned == 65
    assert stats.current_streak == 4
    assert stats.longest_streak == 4
    assert stats.total_xp == 65
    assert stats.total_cards_reviewed == 1

    complete_session(start_session(user, today=TODAY), now=NOW + timedelta(hours=1))
    stats.refresh_from_db()
    assert stats.current_streak == 4
    assert stats.total_xp == 115


def test_streak_restarts_after_a_gap(user_factory):
    user = user_factory()
    UserStudyStats.objects.filter(user=user).update(
        current_streak=7, longest_streak=9, last_study_date=TODAY - timedelta(days=3)
    )

    complete_session(start_session(user, today=TODAY), now=NOW)

    stats = UserStudyStats.objects.get(user=user)
    assert stats.current_streak == 1
    assert stats.longest_streak == 9


def test_upcoming_review_counts(user_factory, error_entry_factory):
    user = user_factory()
    error_entry_factory(user=user, next_review_date=None)
    error_entry_factory(user=user, next_review_date=TODAY - timedelta(days=2))
    error_entry_factory(user=user, next_review_date=TODAY + timedelta(days=2))
    error_entry_factory(user=user, next_review_date=TODAY + timedelta(days=2))
    error_entry_factory(user=user, next_review_date=TODAY + timedelta(days=30))

    counts = upcoming_review_counts(user, today=TODAY)

    assert len(counts) == 7
    assert counts[0] == {'date': TODAY.isoformat(), 'count': 2, 'is_today': True}
    assert counts[2]['count'] == 2
    assert sum(day['count'] for day in counts) == 4


def test_reset_progress_keeps_history(user_factory, error_entry_factory):
    user = user_factory()
    card = error_entry_factory(user=user)
    foreign = error_entry_factory(stability=3.0, state=ErrorEntry.STATE_REVIEW)
    session = start_session(user, today=TODAY)
    rate_card(session, card.id, 'easy', now=NOW)

    assert reset_progress(user, [card.id, foreign.id]) == 1

    card.refresh_from_db()
    foreign.refresh_from_db()
    assert card.state == ErrorEntry.STATE_NEW
    assert card.next_review_date is None
    assert card.review_count == 0
    assert FlashcardReview.objects.filter(flashcard=card).count() == 1
    assert foreign.stability == 3.0


def test_rating_previews_for_new_card(user_factory, error_entry_factory):
    card = error_entry_factory(user=user_factory())

    previews = build_rating_previews(card, today=TODAY)

    assert set(previews) == {'easy', 'hard', 'wrong'}
    assert previews['wrong']['interval'] == 1
    assert previews['easy']['interval'] == 8
    assert previews['easy']['due_date'] == (TODAY + timedelta(days=8)).isoformat()
    assert previews['easy']['humanized'] == '1 w'


def test_only_the_current_card_can_be_rated(user_factory, error_entry_factory):
    user = user_factory()
    queued = error_entry_factory(user=user)
    session = start_session(user, today=TODAY)
    outside = error_entry_factory(user=user)

    with pytest.raises(CardNotCurrentError):
        rate_card(session, outside.id, 'easy', now=NOW)

    session.refresh_from_db()
    outside.refresh_from_db()
    assert session.position == 0
    assert session.current_card_id == str(queued.id)
    assert outside.review_count == 0
    assert not FlashcardReview.objects.exists()

    rate_card(session, queued.id, 'easy', now=NOW)
    with pytest.raises(CardNotCurrentError):
        rate_card(session, queued.id, 'easy', now=NOW)
