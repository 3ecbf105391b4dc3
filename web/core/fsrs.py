"""FSRS v6 memory model used to schedule error-notebook reviews.

Only three answer buttons exist (wrong / hard / easy). They arrive as the
quality values 1, 3 and 5 and map onto the FSRS ratings Again, Hard and Easy;
the Good rating is never produced by the study screen.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence, Union

from django.conf import settings

# FSRS v6.1.1 default weights (w0..w20).
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.212, 1.2931, 2.3065, 8.2956,
    6.4133, 0.8334, 3.0194, 0.001,
    1.8722, 0.1666, 0.796, 1.4835,
    0.0614, 0.2629, 1.6483, 0.6014,
    1.8729, 0.5425, 0.0912, 0.0658,
    0.1542,
)

DEFAULT_RETENTION = 0.9

# Floor for stored stability; 0 is reserved for cards never reviewed.
MIN_STABILITY = 0.01

# Seed values for cards scheduled before the FSRS fields existed.
LEGACY_DIFFICULTY = 5.0

QUALITY_WRONG = 1
QUALITY_HARD = 3
QUALITY_EASY = 5

QUALITY_BY_DIFFICULTY = {
    'wrong': QUALITY_WRONG,
    'hard': QUALITY_HARD,
    'easy': QUALITY_EASY,
}


class State(IntEnum):
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class Rating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


WeightsInput = Union[Sequence[float], dict, None]


@dataclass(frozen=True)
class FSRSConfig:
    request_retention: float
    min_retention: float
    max_retention: float
    initial_easy_stability: float


@dataclass(frozen=True)
class MemoryState:
    stability: float
    difficulty: float
    state: State


@dataclass(frozen=True)
class ReviewResult:
    interval: int
    stability: float
    difficulty: float
    state: State


def get_fsrs_config() -> FSRSConfig:
    cfg = getattr(settings, 'FSRS_DEFAULTS', {})
    return FSRSConfig(
        request_retention=cfg.get('request_retention', DEFAULT_RETENTION),
        min_retention=cfg.get('min_retention', 0.7),
        max_retention=cfg.get('max_retention', 0.99),
        initial_easy_stability=cfg.get('initial_easy_stability', 4.5),
    )


def quality_to_rating(quality: int) -> Rating:
    if quality not in range(0, 6):
        raise ValueError('quality must be 0..5')
    if quality in (0, QUALITY_WRONG):
        return Rating.AGAIN
    if quality == QUALITY_HARD:
        return Rating.HARD
    if quality == QUALITY_EASY:
        return Rating.EASY
    return Rating.GOOD


def resolve_weights(custom_params: WeightsInput = None) -> tuple[float, ...]:
    """Return ``custom_params`` when it is a full weight vector, else the defaults.

    Stored parameter objects look like ``{"w": [...]}``; vectors of another
    length (older FSRS versions) are ignored.
    """
    weights = custom_params.get('w') if isinstance(custom_params, dict) else custom_params
    if weights is not None and len(weights) == len(DEFAULT_WEIGHTS):
        return tuple(float(value) for value in weights)
    return DEFAULT_WEIGHTS


class FSRS:
    def __init__(self, weights: WeightsInput = None):
        self.w = resolve_weights(weights)
        self.decay = -self.w[20]
        self.factor = math.pow(0.9, 1 / self.decay) - 1

    def _constrain_difficulty(self, difficulty: float) -> float:
        return min(max(round(difficulty, 2), 1.0), 10.0)

    def _mean_reversion(self, init: float, current: float) -> float:
        return self.w[7] * init + (1 - self.w[7]) * current

    def _linear_damping(self, delta: float, old_difficulty: float) -> float:
        return delta * (10 - old_difficulty) / 9

    def init_difficulty(self, rating: int) -> float:
        return self._constrain_difficulty(self.w[4] - math.exp(self.w[5] * (rating - 1)) + 1)

    def init_stability(self, rating: int) -> float:
        return max(self.w[rating - 1], 0.1)

    def next_difficulty(self, difficulty: float, rating: int) -> float:
        delta = -self.w[6] * (rating - 3)
        next_d = difficulty + self._linear_damping(delta, difficulty)
        return self._constrain_difficulty(self._mean_reversion(self.init_difficulty(Rating.EASY), next_d))

    def next_recall_stability(self, difficulty: float, stability: float, retrievability: float, rating: int) -> float:
        hard_penalty = self.w[15] if rating == Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating == Rating.EASY else 1.0
        return stability * (
            1
            + math.exp(self.w[8])
            * (11 - difficulty)
            * math.pow(stability, -self.w[9])
            * (math.exp((1 - retrievability) * self.w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )

    def next_forget_stability(self, difficulty: float, stability: float, retrievability: float) -> float:
        floor = stability / math.exp(self.w[17] * self.w[18])
        post_lapse = (
            self.w[11]
            * math.pow(difficulty, -self.w[12])
            * (math.pow(stability + 1, self.w[13]) - 1)
            * math.exp((1 - retrievability) * self.w[14])
        )
        return min(post_lapse, floor)

    def next_short_term_stability(self, stability: float, rating: int) -> float:
        increase = math.exp(self.w[17] * (rating - 3 + self.w[18])) * math.pow(stability, -self.w[19])
        if rating >= Rating.GOOD:
            increase = max(increase, 1.0)
        return stability * increase

    def retrievability(self, stability: float, elapsed_days: float) -> float:
        return math.pow(1 + self.factor * elapsed_days / stability, self.decay)

    def next_interval(self, stability: float, request_retention: float = DEFAULT_RETENTION) -> int:
        interval = stability / self.factor * (math.pow(request_retention, 1 / self.decay) - 1)
        return max(int(round(interval)), 1)


def calculate_next_review(
    quality: int,
    stability: float = 0.0,
    difficulty: float = 0.0,
    state: int = State.NEW,
    days_since_last_review: float = 0,
    requested_retention: float = DEFAULT_RETENTION,
    custom_params: WeightsInput = None,
) -> ReviewResult:
    """Turn one rating into the card's next interval and memory state.

    Pure: callers persist the result, bump ``lapses`` on wrong answers and set
    ``next_review_date = today + interval``.
    """
    fsrs = FSRS(custom_params)
    rating = quality_to_rating(quality)
    state = State(state)
    s = float(stability or 0.0)
    d = float(difficulty or 0.0)
    if s <= 0:
        state = State.NEW

    if state == State.NEW:
        d = fsrs.init_difficulty(rating)
        s = fsrs.init_stability(rating)
        state = State.LEARNING if rating == Rating.AGAIN else State.REVIEW
    elif state in (State.LEARNING, State.RELEARNING):
        d = fsrs.next_difficulty(d, rating)
        s = fsrs.next_short_term_stability(s, rating)
        if rating != Rating.AGAIN:
            state = State.REVIEW
    else:
        r = fsrs.retrievability(s, days_since_last_review)
        d = fsrs.next_difficulty(d, rating)
        if rating == Rating.AGAIN:
            s = fsrs.next_forget_stability(d, s, r)
            state = State.RELEARNING
        else:
            s = fsrs.next_recall_stability(d, s, r, rating)
            state = State.REVIEW

    interval = fsrs.next_interval(s, requested_retention)
    if rating == Rating.AGAIN:
        interval = 1

    return ReviewResult(
        interval=interval,
        stability=round(max(s, MIN_STABILITY), 2),
        difficulty=round(d, 2),
        state=state,
    )


def effective_memory_state(
    stability: Optional[float],
    difficulty: Optional[float],
    state: Optional[int],
    interval: Optional[int],
) -> MemoryState:
    """Memory state to feed the scheduler, seeding legacy interval-only cards.

    A card with no stability but a positive ``interval`` was scheduled before
    FSRS; it is treated as a Review card whose stability equals that interval.
    Nothing is written back here.
    """
    legacy = not stability and (interval or 0) > 0
    if legacy:
        return MemoryState(
            stability=float(interval),
            difficulty=float(difficulty) if difficulty else LEGACY_DIFFICULTY,
            state=State(state) if state not in (None, State.NEW) else State.REVIEW,
        )
    return MemoryState(
        stability=float(stability or 0.0),
        difficulty=float(difficulty or 0.0),
        state=State(state) if state is not None else State.NEW,
    )


def card_memory_state(card) -> MemoryState:
    return effective_memory_state(card.stability, card.difficulty, card.state, card.interval)
