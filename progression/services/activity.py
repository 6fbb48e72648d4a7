from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from progression.achievements.evaluator import ActivityStats
from progression.models.progress import UserProgress, XpTransaction, utcnow
from progression.services.history import utc_day
from progression.utils.constants import WORKOUT_SOURCE


def workout_days(history: Iterable[XpTransaction]) -> set[date]:
    return {utc_day(tx) for tx in history if tx.source == WORKOUT_SOURCE}


def current_streak(days: set[date], today: date) -> int:
    '''Consecutive workout days ending today, or yesterday if today is open.'''
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def ledger_stats(history: Iterable[XpTransaction], today: date) -> ActivityStats:
    '''Workout counters derived from the XP ledger alone.'''
    entries = list(history)
    return ActivityStats(
        streak_count=current_streak(workout_days(entries), today),
        completed_workouts=sum(1 for tx in entries if tx.source == WORKOUT_SOURCE),
    )


def ledger_stats_provider(
    clock: Optional[Callable[[], datetime]] = None,
) -> Callable[[UserProgress], ActivityStats]:
    now = clock or utcnow

    def provide(progress: UserProgress) -> ActivityStats:
        return ledger_stats(progress.xp_history, now().date())

    return provide
