from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, NamedTuple

from progression.achievements.catalog import (
    AchievementDefinition,
    CategoryLevelRequirement,
)
from progression.exceptions import CatalogIntegrityError, UnknownCategory
from progression.models.progress import UserProgress
from progression.utils.constants import Category
from progression.utils.helper import parse_category


@dataclass(frozen=True)
class ActivityStats:
    '''Counters owned by other subsystems, resolved outside the evaluator.'''

    streak_count: int = 0
    completed_workouts: int = 0
    exercise_mastery: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ProgressSnapshot:
    total_xp: int
    level: int
    category_levels: Mapping[Category, int]
    streak_count: int = 0
    completed_workouts: int = 0
    exercise_mastery: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def of(
        cls, progress: UserProgress, stats: ActivityStats | None = None
    ) -> 'ProgressSnapshot':
        stats = stats or ActivityStats()
        return cls(
            total_xp=progress.total_xp,
            level=progress.level,
            category_levels=MappingProxyType(
                {c: p.level for c, p in progress.category_progress.items()}
            ),
            streak_count=stats.streak_count,
            completed_workouts=stats.completed_workouts,
            exercise_mastery=MappingProxyType(dict(stats.exercise_mastery)),
        )


class Shortfall(NamedTuple):
    requirement: str
    current: int
    required: int


def _category_level(
    definition: AchievementDefinition,
    req: CategoryLevelRequirement,
    snapshot: ProgressSnapshot,
) -> int:
    try:
        category = parse_category(req.category)
    except UnknownCategory as e:
        raise CatalogIntegrityError(
            f'Achievement {definition.id!r} references unknown category '
            f'{req.category!r}',
            {'achievement_id': definition.id, 'category': req.category},
        ) from e
    if category not in snapshot.category_levels:
        raise CatalogIntegrityError(
            f'Progress has no entry for category {category.value!r}',
            {'achievement_id': definition.id, 'category': category.value},
        )
    return snapshot.category_levels[category]


def _measure(
    definition: AchievementDefinition, snapshot: ProgressSnapshot
) -> list[Shortfall]:
    '''Pair every populated requirement with the snapshot's current value.'''
    req = definition.requirements
    measured: list[Shortfall] = []
    if req.level is not None:
        measured.append(Shortfall('level', snapshot.level, req.level))
    if req.total_xp is not None:
        measured.append(Shortfall('total_xp', snapshot.total_xp, req.total_xp))
    if req.category_level is not None:
        measured.append(
            Shortfall(
                f'{req.category_level.category}_level',
                _category_level(definition, req.category_level, snapshot),
                req.category_level.level,
            )
        )
    if req.streak_count is not None:
        measured.append(
            Shortfall('streak_count', snapshot.streak_count, req.streak_count)
        )
    if req.completed_workouts is not None:
        measured.append(
            Shortfall(
                'completed_workouts',
                snapshot.completed_workouts,
                req.completed_workouts,
            )
        )
    if req.exercise_mastery is not None:
        mastery = req.exercise_mastery
        measured.append(
            Shortfall(
                f'exercise_mastery:{mastery.exercise_id}',
                int(snapshot.exercise_mastery.get(mastery.exercise_id, 0)),
                mastery.level,
            )
        )
    return measured


def is_satisfied(definition: AchievementDefinition, snapshot: ProgressSnapshot) -> bool:
    return all(m.current >= m.required for m in _measure(definition, snapshot))


def unmet_requirements(
    definition: AchievementDefinition, snapshot: ProgressSnapshot
) -> list[Shortfall]:
    return [m for m in _measure(definition, snapshot) if m.current < m.required]


def progress_percent(
    definition: AchievementDefinition, snapshot: ProgressSnapshot
) -> int:
    '''Completion towards the weakest requirement, 0-100.'''
    measured = _measure(definition, snapshot)
    if not measured:
        return 0
    return min(min(100, (m.current * 100) // m.required) for m in measured)
