from progression.models.progress import UserProgress
from progression.services.levels import LevelCalculator
from progression.services.statistics import (
    CATEGORY_METADATA,
    _percent,
    balance_message,
    get_categories_comparison,
    get_category_rank,
    get_category_statistics,
)
from progression.utils.constants import CATEGORIES, Category


def _progress(**xp) -> UserProgress:
    progress = UserProgress.default('u1')
    calc = LevelCalculator()
    for name, amount in xp.items():
        entry = progress.category(name)
        entry.xp = amount
        entry.level = calc.level(amount)
    progress.total_xp = sum(xp.values())
    progress.level = calc.level(progress.total_xp)
    return progress


def test_rank_bands():
    novice = get_category_rank(0)
    assert (novice.rank, novice.next_rank) == ('Novice', 'Beginner')
    assert novice.xp_to_next_rank == 500
    assert novice.progress_percent == 0

    beginner = get_category_rank(750)
    assert beginner.rank == 'Beginner'
    assert beginner.progress_percent == 25
    assert beginner.next_threshold == 1500

    top = get_category_rank(25_000)
    assert top.rank == 'Grandmaster'
    assert top.next_rank is None
    assert top.progress_percent == 100


def test_percent_rounds_half_up():
    assert _percent(1, 3) == 33
    assert _percent(2, 3) == 67
    assert _percent(1, 8) == 13
    assert _percent(5, 0) == 0


def test_category_statistics_reads_progress_only():
    progress = _progress(push=1250, legs=250)
    snapshot = progress.clone()

    stats = get_category_statistics('push', progress)

    assert stats.category is Category.PUSH
    assert stats.meta is CATEGORY_METADATA[Category.PUSH]
    assert (stats.xp, stats.level) == (1250, 2)
    assert stats.xp_to_next_level == 750
    assert stats.level_progress_percent == 25
    assert stats.percent_of_total == 83
    assert stats.rank.rank == 'Beginner'
    assert stats.recent_activity == ()
    assert progress == snapshot


def test_category_statistics_with_custom_calculator():
    stats = get_category_statistics(
        Category.CORE, _progress(core=150), LevelCalculator.from_costs([100, 200])
    )
    assert stats.xp_to_next_level == 150


def test_balanced_training_scores_full_marks():
    comparison = get_categories_comparison(
        _progress(core=500, push=500, pull=500, legs=500)
    )
    assert comparison.balance_score == 100
    assert comparison.balance_message.startswith('Excellent')
    assert [s.category for s in comparison.categories] == list(CATEGORIES)
    assert comparison.average_level == 1


def test_lopsided_training_is_flagged():
    comparison = get_categories_comparison(_progress(legs=4000))
    assert comparison.strongest.category is Category.LEGS
    assert comparison.weakest.xp == 0
    assert comparison.balance_score == 0
    assert comparison.balance_message.startswith('Major imbalance')


def test_balance_message_bands():
    assert balance_message(95).startswith('Excellent')
    assert balance_message(70).startswith('Good')
    assert balance_message(50).startswith('Decent')
    assert balance_message(30).startswith('Significant')
    assert balance_message(0).startswith('Major')
