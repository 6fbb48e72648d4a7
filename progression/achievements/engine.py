from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from progression.achievements.catalog import AchievementCatalog, AchievementDefinition
from progression.achievements.definitions import catalog as default_catalog
from progression.achievements.evaluator import (
    ActivityStats,
    ProgressSnapshot,
    is_satisfied,
    progress_percent,
    unmet_requirements,
)
from progression.exceptions import ConcurrentUpdateError, InvalidAmount, InvalidSource
from progression.models.achievement import AchievementTable
from progression.models.progress import UserProgress, XpTransaction, utcnow
from progression.services.levels import LevelCalculator, LevelInfo
from progression.services.repository import (
    PostgresProgressRepository,
    ProgressRepository,
)
from progression.services.activity import ledger_stats_provider
from progression.services.history import (
    DailySummary,
    GroupBy,
    HistoryPoint,
    build_daily_summaries,
    history_by_period,
)
from progression.services.statistics import (
    CategoriesComparison,
    CategoryStats,
    get_categories_comparison,
    get_category_statistics,
)
from progression.utils.config import Settings
from progression.utils.constants import ACHIEVEMENT_SOURCE, Category
from progression.utils.helper import parse_category
from progression.utils.tracing import trace_span

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Resolves counters owned by other subsystems for the progress being scanned
StatsProvider = Callable[[UserProgress], ActivityStats]


@dataclass(frozen=True)
class ProgressionResult:
    user_id: str
    total_xp: int
    level: int
    previous_level: int
    level_info: LevelInfo
    xp_applied: int
    achievement_xp: int
    unlocked: tuple[AchievementDefinition, ...]
    category: Optional[Category] = None
    category_level: Optional[int] = None
    progress: Optional[UserProgress] = field(default=None, repr=False, compare=False)

    @property
    def leveled_up(self) -> bool:
        return self.level > self.previous_level


@dataclass(frozen=True)
class AchievementStatus:
    definition: AchievementDefinition
    unlocked: bool
    progress: int


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: Optional[str] = None


def _no_stats(progress: UserProgress) -> ActivityStats:
    return ActivityStats()


def _check_amount(amount: Any) -> int:
    # bool is an int subclass but never a meaningful XP amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(
            'XP amount must be a positive integer', {'amount': amount}
        )
    return amount


def _check_source(source: Any) -> str:
    if not isinstance(source, str) or not source.strip():
        raise InvalidSource('XP source label is required', {'source': source})
    return source.strip()


class ProgressionEngine:
    '''Applies XP to a user's progress and awards achievements it unlocks.

    Every mutation is a read-modify-write of one progress record, committed
    with a compare-and-save. A lost race reloads and recomputes from scratch,
    so concurrent calls for the same user never lose XP or grant an
    achievement twice.
    '''

    def __init__(
        self,
        repository: ProgressRepository,
        catalog: Optional[AchievementCatalog] = None,
        calculator: Optional[LevelCalculator] = None,
        settings: Optional[Settings] = None,
        stats_provider: Optional[StatsProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.repository = repository
        self.catalog = catalog if catalog is not None else default_catalog
        self.calculator = calculator or LevelCalculator.flat(self.settings.xp_per_level)
        self._stats_provider = stats_provider or _no_stats
        self._clock = clock or utcnow

    # -- helpers -----------------------------------------------------------

    def _resolve_stats(
        self, progress: UserProgress, stats: Optional[ActivityStats]
    ) -> ActivityStats:
        return stats if stats is not None else self._stats_provider(progress)

    def _recompute_levels(self, progress: UserProgress) -> None:
        progress.level = self.calculator.level(progress.total_xp)
        for entry in progress.category_progress.values():
            entry.level = self.calculator.level(entry.xp)

    def _scan(
        self, progress: UserProgress, stats: ActivityStats
    ) -> list[AchievementDefinition]:
        snapshot = ProgressSnapshot.of(progress, stats)
        return [
            definition
            for definition in self.catalog.all()
            if not progress.has_unlocked(definition.id)
            and is_satisfied(definition, snapshot)
        ]

    def _award(
        self,
        progress: UserProgress,
        definitions: list[AchievementDefinition],
        now: datetime,
    ) -> int:
        awarded = 0
        for definition in definitions:
            if progress.has_unlocked(definition.id):
                continue
            progress.unlocked_achievement_ids.append(definition.id)
            progress.total_xp += definition.xp_reward
            awarded += definition.xp_reward
            progress.xp_history.append(
                XpTransaction(
                    amount=definition.xp_reward,
                    source=ACHIEVEMENT_SOURCE,
                    date=now,
                    description=f'Unlocked achievement: {definition.title}',
                )
            )
        return awarded

    def _unlock(
        self, progress: UserProgress, stats: ActivityStats, now: datetime
    ) -> list[AchievementDefinition]:
        '''Scan, award and re-level. One pass unless cascading is enabled.'''
        unlocked: list[AchievementDefinition] = []
        # Each extra pass needs at least one new unlock, so this is bounded
        max_passes = (len(self.catalog) + 1) if self.settings.cascade_unlocks else 1
        for _ in range(max_passes):
            found = self._scan(progress, stats)
            if not found:
                break
            self._award(progress, found, now)
            self._recompute_levels(progress)
            unlocked.extend(found)
        return unlocked

    def _commit(
        self,
        user_id: str,
        mutate: Callable[[UserProgress], tuple[T, bool]],
    ) -> tuple[UserProgress, T]:
        '''Load, mutate and compare-and-save, retrying lost races.

        ``mutate`` returns its payload and whether the record needs saving.
        '''
        attempts = self.settings.max_save_attempts
        for attempt in range(1, attempts + 1):
            progress = self.repository.load_or_create(user_id)
            payload, dirty = mutate(progress)
            if not dirty:
                return progress, payload
            try:
                return self.repository.save(progress), payload
            except ConcurrentUpdateError:
                logger.warning(
                    f'Concurrent update on progress for user {user_id} '
                    f'(attempt {attempt}/{attempts}), retrying'
                )
        raise ConcurrentUpdateError(
            'Gave up saving progress after repeated concurrent updates',
            {'user_id': user_id, 'attempts': attempts},
        )

    def _result(
        self,
        saved: UserProgress,
        previous_level: int,
        xp_applied: int,
        unlocked: list[AchievementDefinition],
        category: Optional[Category] = None,
    ) -> ProgressionResult:
        return ProgressionResult(
            user_id=saved.user_id,
            total_xp=saved.total_xp,
            level=saved.level,
            previous_level=previous_level,
            level_info=self.calculator.level_for(saved.total_xp),
            xp_applied=xp_applied,
            achievement_xp=sum(d.xp_reward for d in unlocked),
            unlocked=tuple(unlocked),
            category=category,
            category_level=(
                saved.category_progress[category].level if category else None
            ),
            progress=saved,
        )

    # -- mutations ---------------------------------------------------------

    def apply_xp(
        self,
        user_id: str,
        amount: int,
        source: str,
        category: Optional[Category | str] = None,
        description: Optional[str] = None,
        stats: Optional[ActivityStats] = None,
    ) -> ProgressionResult:
        amount = _check_amount(amount)
        source = _check_source(source)
        cat = parse_category(category) if category is not None else None
        user_id = str(user_id)

        with trace_span(
            'progression.apply_xp',
            {'user_id': user_id, 'amount': amount, 'source': source},
        ) as span:
            def mutate(
                progress: UserProgress,
            ) -> tuple[tuple[int, list[AchievementDefinition]], bool]:
                now = self._clock()
                previous_level = progress.level
                progress.total_xp += amount
                if cat is not None:
                    progress.category_progress[cat].xp += amount
                progress.xp_history.append(
                    XpTransaction(
                        amount=amount,
                        source=source,
                        category=cat,
                        date=now,
                        description=description,
                    )
                )
                self._recompute_levels(progress)
                # stats see the entry just appended
                resolved = self._resolve_stats(progress, stats)
                unlocked = self._unlock(progress, resolved, now)
                progress.last_updated = now
                return (previous_level, unlocked), True

            saved, (previous_level, unlocked) = self._commit(user_id, mutate)
            span.set('unlocked', len(unlocked))

        if unlocked:
            logger.info(
                f'User {user_id} unlocked {[d.id for d in unlocked]} '
                f'(+{sum(d.xp_reward for d in unlocked)} XP)'
            )
        return self._result(saved, previous_level, amount, unlocked, cat)

    def award_achievements(
        self, user_id: str, stats: Optional[ActivityStats] = None
    ) -> ProgressionResult:
        '''Rescan the catalog without granting XP; saves only on new unlocks.'''
        user_id = str(user_id)
        with trace_span('progression.award_achievements', {'user_id': user_id}) as span:
            def mutate(
                progress: UserProgress,
            ) -> tuple[tuple[int, list[AchievementDefinition]], bool]:
                now = self._clock()
                previous_level = progress.level
                resolved = self._resolve_stats(progress, stats)
                unlocked = self._unlock(progress, resolved, now)
                if unlocked:
                    progress.last_updated = now
                return (previous_level, unlocked), bool(unlocked)

            saved, (previous_level, unlocked) = self._commit(user_id, mutate)
            span.set('unlocked', len(unlocked))

        if unlocked:
            logger.info(f'User {user_id} unlocked {[d.id for d in unlocked]} on rescan')
        return self._result(saved, previous_level, 0, unlocked)

    # -- reads -------------------------------------------------------------

    def get_progress(self, user_id: str) -> UserProgress:
        return self.repository.load_or_create(str(user_id))

    def get_level_info(self, user_id: str) -> LevelInfo:
        return self.calculator.level_for(self.get_progress(user_id).total_xp)

    def get_category_statistics(
        self, category: Category | str, user_id: str
    ) -> CategoryStats:
        cat = parse_category(category)
        return get_category_statistics(cat, self.get_progress(user_id), self.calculator)

    def get_categories_comparison(self, user_id: str) -> CategoriesComparison:
        return get_categories_comparison(self.get_progress(user_id), self.calculator)

    def get_daily_summaries(self, user_id: str) -> list[DailySummary]:
        return build_daily_summaries(self.get_progress(user_id).xp_history)

    def get_xp_history(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        group_by: GroupBy = 'day',
        category: Optional[Category | str] = None,
    ) -> list[HistoryPoint]:
        cat = parse_category(category) if category is not None else None
        return history_by_period(
            self.get_progress(user_id).xp_history, since, group_by, cat
        )

    def achievements_with_status(
        self, user_id: str, stats: Optional[ActivityStats] = None
    ) -> list[AchievementStatus]:
        progress = self.get_progress(user_id)
        snapshot = ProgressSnapshot.of(progress, self._resolve_stats(progress, stats))
        statuses = []
        for definition in self.catalog.all():
            unlocked = progress.has_unlocked(definition.id)
            statuses.append(
                AchievementStatus(
                    definition=definition,
                    unlocked=unlocked,
                    progress=(
                        100 if unlocked else progress_percent(definition, snapshot)
                    ),
                )
            )
        return statuses

    def check_eligibility(
        self,
        user_id: str,
        achievement_id: str,
        stats: Optional[ActivityStats] = None,
    ) -> Eligibility:
        definition = self.catalog.get(achievement_id)
        if definition is None:
            raise KeyError(achievement_id)
        progress = self.get_progress(user_id)
        if progress.has_unlocked(definition.id):
            return Eligibility(False, 'Achievement already unlocked')
        snapshot = ProgressSnapshot.of(progress, self._resolve_stats(progress, stats))
        missing = unmet_requirements(definition, snapshot)
        if not missing:
            return Eligibility(True)
        first = missing[0]
        return Eligibility(
            False,
            f'{first.requirement} requirement not met: '
            f'{first.current}/{first.required}',
        )


def build_engine(
    settings: Optional[Settings] = None,
    stats_provider: Optional[StatsProvider] = None,
) -> ProgressionEngine:
    '''Engine wired to Postgres, with stored achievements as the dynamic tier.

    Streak and workout counters come from the XP ledger unless a provider
    is given.
    '''
    settings = settings or Settings.from_env()
    return ProgressionEngine(
        repository=PostgresProgressRepository(),
        catalog=default_catalog.with_source(AchievementTable()),
        settings=settings,
        stats_provider=stats_provider or ledger_stats_provider(),
    )
