import pytest

from core.fsrs import (
    DEFAULT_WEIGHTS,
    FSRS,
    QUALITY_EASY,
    QUALITY_HARD,
    QUALITY_WRONG,
    Rating,
    State,
    calculate_next_review,
    effective_memory_state,
    quality_to_rating,
    resolve_weights,
)


@pytest.mark.parametrize(
    'quality, expected',
    [(0, Rating.AGAIN), (1, Rating.AGAIN), (2, Rating.GOOD), (3, Rating.HARD), (4, Rating.GOOD), (5, Rating.EASY)],
)
def test_quality_to_rating(quality, expected):
    assert quality_to_rating(quality) == expected


@pytest.mark.parametrize('quality', [-1, 6])
def test_quality_out_of_range_rejected(quality):
    with pytest.raises(ValueError):
        calculate_next_review(quality)


def test_wrong_always_schedules_next_day():
    for state, stability in [(State.NEW, 0), (State.LEARNING, 1.5), (State.REVIEW, 40.0), (State.RELEARNING, 2.0)]:
        result = calculate_next_review(QUALITY_WRONG, stability, 5.0, state, days_since_last_review=10)
        assert result.interval == 1


def test_new_card_easy_goes_to_review():
    result = calculate_next_review(QUALITY_EASY)
    assert result.state == State.REVIEW
    assert result.stability == pytest.approx(8.3, abs=0.01)
    assert result.interval == 8
    assert 1 <= result.difficulty <= 10


def test_new_card_wrong_enters_learning():
    result = calculate_next_review(QUALITY_WRONG)
    assert result.state == State.LEARNING
    assert result.stability == pytest.approx(0.21, abs=0.01)


def test_learning_card_graduates_unless_wrong():
    assert calculate_next_review(QUALITY_HARD, 0.21, 7.0, State.LEARNING).state == State.REVIEW
    assert calculate_next_review(QUALITY_WRONG, 0.21, 7.0, State.LEARNING).state == State.LEARNING
    assert calculate_next_review(QUALITY_WRONG, 1.0, 7.0, State.RELEARNING).state == State.RELEARNING


def test_review_wrong_lowers_stability_and_relearns():
    result = calculate_next_review(QUALITY_WRONG, 30.0, 5.0, State.REVIEW, days_since_last_review=30)
    assert result.state == State.RELEARNING
    assert result.stability < 30.0


def test_review_easy_grows_stability():
    result = calculate_next_review(QUALITY_EASY, 10.0, 5.0, State.REVIEW, days_since_last_review=10)
    assert result.state == State.REVIEW
    assert result.stability > 10.0
    assert result.interval > 10


def test_difficulty_stays_within_bounds():
    difficulty, stability = 9.9, 5.0
    for _ in range(10):
        result = calculate_next_review(QUALITY_WRONG, stability, difficulty, State.REVIEW, days_since_last_review=3)
        difficulty, stability = result.difficulty, max(result.stability, 0.1)
        assert 1 <= difficulty <= 10
    difficulty = 1.1
    for _ in range(10):
        result = calculate_next_review(QUALITY_EASY, 5.0, difficulty, State.REVIEW, days_since_last_review=5)
        difficulty = result.difficulty
        assert 1 <= difficulty <= 10


def test_higher_retention_shortens_interval():
    relaxed = calculate_next_review(QUALITY_EASY, 20.0, 5.0, State.REVIEW, 20, requested_retention=0.8)
    strict = calculate_next_review(QUALITY_EASY, 20.0, 5.0, State.REVIEW, 20, requested_retention=0.95)
    assert strict.interval < relaxed.interval


def test_custom_weights_change_initial_stability():
    weights = list(DEFAULT_WEIGHTS)
    weights[3] = 4.5
    result = calculate_next_review(QUALITY_EASY, custom_params={'w': weights})
    assert result.stability == pytest.approx(4.5)


@pytest.mark.parametrize('params', [None, [], [1.0] * 17, {'w': [0.5] * 19}, {'other': 1}])
def test_invalid_weights_fall_back_to_defaults(params):
    assert resolve_weights(params) == DEFAULT_WEIGHTS


def test_retrievability_is_ninety_percent_at_stability():
    fsrs = FSRS()
    assert fsrs.retrievability(12.0, 12.0) == pytest.approx(0.9)
    assert fsrs.next_interval(12.0, 0.9) == 12


def test_legacy_card_uses_interval_as_stability():
    memory = effective_memory_state(None, None, None, 12)
    assert memory.stability == 12.0
    assert memory.difficulty == 5.0
    assert memory.state == State.REVIEW
    assert effective_memory_state(memory.stability, memory.difficulty, memory.state, 12) == memory


def test_fresh_card_memory_state_is_new():
    memory = effective_memory_state(None, None, None, 0)
    assert memory.state == State.NEW
    assert memory.stability == 0.0


def test_zero_stability_in_learning_is_treated_as_new():
    result = calculate_next_review(QUALITY_EASY, 0.0, 0.0, State.LEARNING)
    assert result.state == State.REVIEW
    assert result.interval == 8


def test_interval_never_grows_with_retention():
    intervals = [
        calculate_next_review(QUALITY_HARD, 15.0, 6.0, State.REVIEW, 15, requested_retention=retention).interval
        for retention in (0.7, 0.8, 0.85, 0.9, 0.95, 0.99)
    ]
    assert intervals == sorted(intervals, reverse=True)


def test_repeated_wrong_keeps_a_learning_card_learning():
    result = calculate_next_review(QUALITY_WRONG)
    difficulties = [result.difficulty]
    for _ in range(8):
        result = calculate_next_review(QUALITY_WRONG, result.stability, result.difficulty, result.state)
        assert result.state == State.LEARNING
        assert result.stability >= 0.01
        assert result.interval == 1
        difficulties.append(result.difficulty)

    assert difficulties == sorted(difficulties)
    memory = effective_memory_state(result.stability, result.difficulty, result.state, result.interval)
    assert memory.stability == result.stability
    assert memory.state == State.LEARNING
