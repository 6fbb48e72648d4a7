from datetime import datetime, timedelta, timezone

from progression.achievements.engine import ProgressionEngine, build_engine
from progression.achievements.definitions import catalog
from progression.models.progress import XpTransaction
from progression.services.activity import (
    current_streak,
    ledger_stats,
    ledger_stats_provider,
    workout_days,
)
from progression.services.repository import InMemoryProgressRepository
from progression.utils.config import Settings
from tests.conftest import FROZEN_NOW

TODAY = FROZEN_NOW.date()


def _tx(days_ago, source='workout', hour=12):
    when = datetime.combine(
        TODAY - timedelta(days=days_ago), datetime.min.time(), timezone.utc
    )
    return XpTransaction(10, source, date=when.replace(hour=hour))


def test_workout_days_ignore_other_sources():
    history = [_tx(0), _tx(0, hour=18), _tx(1, source='achievement'), _tx(2)]
    assert workout_days(history) == {TODAY, TODAY - timedelta(days=2)}


def test_streak_counts_back_from_today():
    days = {TODAY - timedelta(days=n) for n in (0, 1, 2, 4)}
    assert current_streak(days, TODAY) == 3


def test_streak_survives_until_today_is_logged():
    days = {TODAY - timedelta(days=n) for n in (1, 2)}
    assert current_streak(days, TODAY) == 2
    assert current_streak(days, TODAY + timedelta(days=1)) == 0
    assert current_streak(set(), TODAY) == 0


def test_ledger_stats_counts_workout_entries():
    history = [_tx(0), _tx(0, hour=20), _tx(1), _tx(1, source='achievement')]
    stats = ledger_stats(history, TODAY)
    assert stats.completed_workouts == 3
    assert stats.streak_count == 2
    assert dict(stats.exercise_mastery) == {}


def test_tenth_workout_unlocks_workout_achievement():
    engine = ProgressionEngine(
        InMemoryProgressRepository(),
        stats_provider=ledger_stats_provider(lambda: FROZEN_NOW),
        clock=lambda: FROZEN_NOW,
    )
    for _ in range(9):
        result = engine.apply_xp('u1', 10, 'workout', 'core')
        assert 'workouts_10' not in [d.id for d in result.unlocked]
    result = engine.apply_xp('u1', 10, 'workout', 'core')
    assert 'workouts_10' in [d.id for d in result.unlocked]


def test_week_of_workouts_unlocks_streak():
    repo = InMemoryProgressRepository()
    days = iter(FROZEN_NOW + timedelta(days=n) for n in range(7))
    current = {'now': FROZEN_NOW}

    def clock():
        return current['now']

    engine = ProgressionEngine(
        repo, stats_provider=ledger_stats_provider(clock), clock=clock
    )
    unlocked = []
    for when in days:
        current['now'] = when
        unlocked += [d.id for d in engine.apply_xp('u1', 10, 'workout').unlocked]
    assert 'streak_7' in unlocked
    assert 'streak_30' not in unlocked


def test_build_engine_reads_stats_from_ledger():
    engine = build_engine(Settings())
    engine.repository = InMemoryProgressRepository()
    engine.catalog = catalog
    progress = engine.repository.load_or_create('u1')
    progress.xp_history.extend(_tx(n) for n in range(3))
    engine.repository.save(progress)

    eligibility = engine.check_eligibility('u1', 'workouts_10')
    assert eligibility.reason == 'completed_workouts requirement not met: 3/10'
    statuses = {s.definition.id: s for s in engine.achievements_with_status('u1')}
    assert statuses['workouts_10'].progress == 30
