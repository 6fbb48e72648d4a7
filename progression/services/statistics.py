from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from progression.models.progress import UserProgress, XpTransaction
from progression.services.history import recent_category_activity
from progression.services.levels import LevelCalculator
from progression.utils.constants import CATEGORIES, CATEGORY_RANKS, Category
from progression.utils.helper import parse_category, xp_to_rank


@dataclass(frozen=True)
class CategoryMeta:
    name: str
    description: str
    icon: str
    color: str
    primary_muscles: tuple[str, ...]


CATEGORY_METADATA: dict[Category, CategoryMeta] = {
    Category.CORE: CategoryMeta(
        'Core',
        'Core stability and abdominal strength',
        'disc',
        'bg-blue-500',
        ('Rectus Abdominis', 'Obliques', 'Transverse Abdominis', 'Erector Spinae'),
    ),
    Category.PUSH: CategoryMeta(
        'Push',
        'Pushing movements - chest, shoulders, triceps',
        'arrow-up',
        'bg-red-500',
        ('Pectoralis', 'Deltoids', 'Triceps'),
    ),
    Category.PULL: CategoryMeta(
        'Pull',
        'Pulling movements - back and biceps',
        'arrow-down',
        'bg-green-500',
        ('Latissimus Dorsi', 'Rhomboids', 'Trapezius', 'Biceps'),
    ),
    Category.LEGS: CategoryMeta(
        'Legs',
        'Lower body strength and mobility',
        'activity',
        'bg-purple-500',
        ('Quadriceps', 'Hamstrings', 'Gluteus', 'Calves'),
    ),
}


@dataclass(frozen=True)
class CategoryRank:
    rank: str
    next_rank: Optional[str]
    progress_percent: int
    xp_to_next_rank: int
    current_threshold: int
    next_threshold: Optional[int]


@dataclass(frozen=True)
class CategoryStats:
    category: Category
    meta: CategoryMeta
    xp: int
    level: int
    xp_to_next_level: int
    level_progress_percent: int
    percent_of_total: int
    rank: CategoryRank
    recent_activity: tuple[XpTransaction, ...]
    unlocked_exercises: int


@dataclass(frozen=True)
class CategoriesComparison:
    categories: tuple[CategoryStats, ...]
    strongest: CategoryStats
    weakest: CategoryStats
    balance_score: int
    balance_message: str
    average_level: float


def get_category_rank(xp: int) -> CategoryRank:
    ascending = sorted(CATEGORY_RANKS)
    name = xp_to_rank(xp)
    idx = next(i for i, (_, n) in enumerate(ascending) if n == name)
    threshold = ascending[idx][0]
    if idx + 1 >= len(ascending):
        return CategoryRank(name, None, 100, 0, threshold, None)
    next_threshold, next_name = ascending[idx + 1]
    span = next_threshold - threshold
    return CategoryRank(
        rank=name,
        next_rank=next_name,
        progress_percent=min(100, ((xp - threshold) * 100) // span),
        xp_to_next_rank=next_threshold - xp,
        current_threshold=threshold,
        next_threshold=next_threshold,
    )


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    # round half up
    return (part * 200 + whole) // (whole * 2)


def get_category_statistics(
    category: Category | str,
    progress: UserProgress,
    calculator: Optional[LevelCalculator] = None,
    recent_limit: int = 5,
) -> CategoryStats:
    '''Display numbers for one category; reads ``progress`` only.'''
    cat = parse_category(category)
    entry = progress.category_progress[cat]
    info = (calculator or LevelCalculator()).level_for(entry.xp)
    return CategoryStats(
        category=cat,
        meta=CATEGORY_METADATA[cat],
        xp=entry.xp,
        level=entry.level,
        xp_to_next_level=info.xp_to_next_level,
        level_progress_percent=info.progress_percent,
        percent_of_total=_percent(entry.xp, progress.total_xp),
        rank=get_category_rank(entry.xp),
        recent_activity=tuple(
            recent_category_activity(cat, progress.xp_history, recent_limit)
        ),
        unlocked_exercises=len(entry.unlocked_exercises),
    )


def balance_message(score: float) -> str:
    if score >= 90:
        return 'Excellent balance across all movement patterns!'
    if score >= 70:
        return 'Good overall balance with room for minor improvements.'
    if score >= 50:
        return 'Decent balance, but some categories need attention.'
    if score >= 30:
        return 'Significant imbalance detected. Focus on weaker areas.'
    return 'Major imbalance. Consider a more balanced training approach.'


def get_categories_comparison(
    progress: UserProgress, calculator: Optional[LevelCalculator] = None
) -> CategoriesComparison:
    stats = tuple(get_category_statistics(c, progress, calculator) for c in CATEGORIES)
    by_xp = sorted(stats, key=lambda s: s.xp, reverse=True)

    score = 0.0
    if progress.total_xp > 0:
        ideal = 100 / len(stats)
        deviation = sum(abs(s.percent_of_total - ideal) for s in stats) / len(stats)
        score = max(0.0, min(100.0, 100 - deviation * 4))

    return CategoriesComparison(
        categories=stats,
        strongest=by_xp[0],
        weakest=by_xp[-1],
        balance_score=round(score),
        balance_message=balance_message(score),
        average_level=sum(s.level for s in stats) / len(stats),
    )
