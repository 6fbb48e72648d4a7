from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from progression.exceptions import CatalogIntegrityError, UnknownCategory
from progression.utils.helper import parse_category


class AchievementType(str, Enum):
    STRENGTH = 'strength'
    CONSISTENCY = 'consistency'
    NUTRITION = 'nutrition'
    MILESTONE = 'milestone'


@dataclass(frozen=True)
class CategoryLevelRequirement:
    category: str
    level: int


@dataclass(frozen=True)
class ExerciseMasteryRequirement:
    exercise_id: str
    level: int


@dataclass(frozen=True)
class Requirements:
    '''Populated fields must all hold; ``None`` fields are not checked.'''

    level: Optional[int] = None
    total_xp: Optional[int] = None
    category_level: Optional[CategoryLevelRequirement] = None
    streak_count: Optional[int] = None
    completed_workouts: Optional[int] = None
    exercise_mastery: Optional[ExerciseMasteryRequirement] = None

    def populated(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in (
                ('level', self.level),
                ('total_xp', self.total_xp),
                ('category_level', self.category_level),
                ('streak_count', self.streak_count),
                ('completed_workouts', self.completed_workouts),
                ('exercise_mastery', self.exercise_mastery),
            )
            if value is not None
        }

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in self.populated().items():
            if isinstance(value, CategoryLevelRequirement):
                out[name] = {'category': value.category, 'level': value.level}
            elif isinstance(value, ExerciseMasteryRequirement):
                out[name] = {'exercise_id': value.exercise_id, 'level': value.level}
            else:
                out[name] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Requirements':
        cat = data.get('category_level')
        mastery = data.get('exercise_mastery')
        return cls(
            level=data.get('level'),
            total_xp=data.get('total_xp'),
            category_level=(
                CategoryLevelRequirement(str(cat['category']), int(cat['level']))
                if cat
                else None
            ),
            streak_count=data.get('streak_count'),
            completed_workouts=data.get('completed_workouts'),
            exercise_mastery=(
                ExerciseMasteryRequirement(
                    str(mastery['exercise_id']), int(mastery['level'])
                )
                if mastery
                else None
            ),
        )


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    title: str
    description: str
    type: AchievementType
    requirements: Requirements
    xp_reward: int
    icon: str
    badge_color: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'AchievementDefinition':
        '''Build a definition from an ``achievements`` table row.'''
        try:
            return cls(
                id=str(row['id']),
                title=row['title'],
                description=row.get('description') or '',
                type=AchievementType(row.get('type') or 'milestone'),
                requirements=Requirements.from_dict(row.get('requirements') or {}),
                xp_reward=int(row.get('xp_reward') or 0),
                icon=row.get('icon') or 'award',
                badge_color=row.get('badge_color'),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogIntegrityError(
                f'Malformed achievement row: {e}', {'row_id': row.get('id')}
            ) from e


def validate_definition(definition: AchievementDefinition) -> AchievementDefinition:
    '''Raise CatalogIntegrityError if the definition cannot be evaluated.'''
    details = {'achievement_id': definition.id}
    if not definition.id or not definition.title:
        raise CatalogIntegrityError('Achievement needs an id and a title', details)
    if definition.xp_reward < 0:
        raise CatalogIntegrityError('Achievement reward cannot be negative', details)

    populated = definition.requirements.populated()
    if not populated:
        raise CatalogIntegrityError('Achievement has no requirements', details)

    for name, value in populated.items():
        threshold = getattr(value, 'level', value)
        if not isinstance(threshold, int) or threshold <= 0:
            raise CatalogIntegrityError(
                f'Requirement {name} needs a positive integer threshold',
                {**details, 'requirement': name, 'value': threshold},
            )

    cat_req = definition.requirements.category_level
    if cat_req is not None:
        try:
            parse_category(cat_req.category)
        except UnknownCategory as e:
            raise CatalogIntegrityError(
                f'Achievement references unknown category {cat_req.category!r}',
                {**details, 'category': cat_req.category},
            ) from e
    return definition


@runtime_checkable
class DefinitionSource(Protocol):
    '''Second catalog tier: definitions stored outside the code.'''

    def definitions(self) -> Iterable[AchievementDefinition]:
        pass

    def lookup(self, title: str) -> Optional[AchievementDefinition]:
        pass


class AchievementCatalog:
    '''Ordered, read-only set of achievement definitions.

    Static definitions are fixed at construction. An optional dynamic source
    is merged in after them at read time; dynamic entries never shadow a
    static id or title.
    '''

    def __init__(
        self,
        definitions: Iterable[AchievementDefinition] = (),
        dynamic: Optional[DefinitionSource] = None,
    ) -> None:
        static: list[AchievementDefinition] = []
        index: dict[str, AchievementDefinition] = {}
        titles: dict[str, AchievementDefinition] = {}
        for definition in definitions:
            validate_definition(definition)
            if definition.id in index:
                raise CatalogIntegrityError(
                    f'Duplicate achievement id {definition.id!r}',
                    {'achievement_id': definition.id},
                )
            static.append(definition)
            index[definition.id] = definition
            titles[definition.title] = definition
        self._static: tuple[AchievementDefinition, ...] = tuple(static)
        self._index = index
        self._titles = titles
        self._dynamic = dynamic

    def with_source(self, dynamic: Optional[DefinitionSource]) -> 'AchievementCatalog':
        return AchievementCatalog(self._static, dynamic=dynamic)

    @property
    def static(self) -> tuple[AchievementDefinition, ...]:
        return self._static

    def _dynamic_definitions(self) -> list[AchievementDefinition]:
        if self._dynamic is None:
            return []
        merged: list[AchievementDefinition] = []
        seen: set[str] = set()
        for definition in self._dynamic.definitions():
            if (
                definition.id in self._index
                or definition.title in self._titles
                or definition.id in seen
            ):
                continue
            merged.append(validate_definition(definition))
            seen.add(definition.id)
        return merged

    def all(self) -> list[AchievementDefinition]:
        return [*self._static, *self._dynamic_definitions()]

    def get(self, achievement_id: str) -> Optional[AchievementDefinition]:
        found = self._index.get(achievement_id)
        if found is not None:
            return found
        for definition in self._dynamic_definitions():
            if definition.id == achievement_id:
                return definition
        return None

    def by_title(self, title: str) -> Optional[AchievementDefinition]:
        found = self._titles.get(title)
        if found is not None or self._dynamic is None:
            return found
        definition = self._dynamic.lookup(title)
        return validate_definition(definition) if definition is not None else None

    def __len__(self) -> int:
        return len(self.all())

    def __contains__(self, achievement_id: object) -> bool:
        return isinstance(achievement_id, str) and self.get(achievement_id) is not None
