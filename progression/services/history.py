from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Literal, Optional

from progression.models.progress import XpTransaction
from progression.utils.constants import CATEGORIES, Category

GroupBy = Literal['day', 'week', 'month']


@dataclass
class DailySummary:
    day: date
    total_xp: int = 0
    sources: dict[str, int] = field(default_factory=dict)
    categories: dict[Category, int] = field(
        default_factory=lambda: {c: 0 for c in CATEGORIES}
    )


@dataclass(frozen=True)
class HistoryPoint:
    period_start: date
    xp: int
    cumulative_xp: int


def utc_day(tx: XpTransaction) -> date:
    when = tx.date
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return when.date()


def period_start(day: date, group_by: GroupBy) -> date:
    if group_by == 'week':
        return day - timedelta(days=day.weekday())
    if group_by == 'month':
        return day.replace(day=1)
    return day


def build_daily_summaries(history: Iterable[XpTransaction]) -> list[DailySummary]:
    '''Aggregate the ledger per UTC day, oldest first.'''
    by_day: dict[date, DailySummary] = {}
    for tx in history:
        key = utc_day(tx)
        summary = by_day.get(key)
        if summary is None:
            summary = by_day[key] = DailySummary(day=key)
        summary.total_xp += tx.amount
        summary.sources[tx.source] = summary.sources.get(tx.source, 0) + tx.amount
        if tx.category is not None:
            summary.categories[tx.category] += tx.amount
    return [by_day[d] for d in sorted(by_day)]


def recent_category_activity(
    category: Category, history: Iterable[XpTransaction], limit: int = 5
) -> list[XpTransaction]:
    matching = [tx for tx in history if tx.category == category]
    # newest first; equal timestamps fall back to reverse ledger order
    matching.reverse()
    matching.sort(key=lambda tx: tx.date, reverse=True)
    return matching[: max(0, limit)]


def history_by_period(
    history: Iterable[XpTransaction],
    since: Optional[datetime] = None,
    group_by: GroupBy = 'day',
    category: Optional[Category] = None,
) -> list[HistoryPoint]:
    '''XP per period with a running total, for charting.

    The running total starts from whatever was earned before ``since`` so
    the series lines up with the user's actual XP.
    '''
    if since is not None and since.tzinfo is None:
        # ledger dates are aware; naive input is taken as UTC
        since = since.replace(tzinfo=timezone.utc)
    buckets: dict[date, int] = defaultdict(int)
    carried = 0
    for tx in history:
        if category is not None and tx.category != category:
            continue
        if since is not None and tx.date < since:
            carried += tx.amount
            continue
        buckets[period_start(utc_day(tx), group_by)] += tx.amount

    points: list[HistoryPoint] = []
    running = carried
    for start in sorted(buckets):
        running += buckets[start]
        points.append(
            HistoryPoint(period_start=start, xp=buckets[start], cumulative_xp=running)
        )
    return points
