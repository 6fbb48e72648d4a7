from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Sequence

from progression.utils.constants import XP_PER_LEVEL


@dataclass(frozen=True)
class LevelInfo:
    level: int
    xp_at_start_of_level: int
    xp_to_next_level: int
    cost: int

    @property
    def next_level_xp(self) -> int:
        '''Total XP at which the next level starts.'''
        return self.xp_at_start_of_level + self.cost

    @property
    def xp_into_level(self) -> int:
        return self.cost - self.xp_to_next_level

    @property
    def progress_percent(self) -> int:
        return min(100, max(0, (self.xp_into_level * 100) // self.cost))


class LevelCalculator:
    '''Maps XP totals to levels using a per-level cost table.

    Level N costs ``costs[N - 1]`` XP; levels past the table keep costing the
    last entry. A single-entry table is the flat "N XP per level" policy.
    '''

    def __init__(self, costs: Sequence[int] = (XP_PER_LEVEL,)) -> None:
        if not costs:
            raise ValueError('Level cost table must not be empty')
        if any(int(c) <= 0 for c in costs):
            raise ValueError('Level costs must be positive')
        if any(b < a for a, b in zip(costs, costs[1:])):
            raise ValueError('Level costs must be non-decreasing')
        self._costs: tuple[int, ...] = tuple(int(c) for c in costs)
        starts = [0]
        for cost in self._costs:
            starts.append(starts[-1] + cost)
        self._starts: tuple[int, ...] = tuple(starts)

    @classmethod
    def flat(cls, xp_per_level: int = XP_PER_LEVEL) -> 'LevelCalculator':
        return cls((xp_per_level,))

    @classmethod
    def from_costs(cls, costs: Sequence[int]) -> 'LevelCalculator':
        return cls(costs)

    @property
    def costs(self) -> tuple[int, ...]:
        return self._costs

    def level_for(self, total_xp: int) -> LevelInfo:
        if total_xp < 0:
            raise ValueError(f'XP total cannot be negative: {total_xp}')
        table_end = self._starts[-1]
        if total_xp >= table_end:
            cost = self._costs[-1]
            extra = (total_xp - table_end) // cost
            level = len(self._costs) + 1 + extra
            start = table_end + extra * cost
        else:
            level = bisect_right(self._starts, total_xp)
            start = self._starts[level - 1]
            cost = self._costs[level - 1]
        return LevelInfo(
            level=level,
            xp_at_start_of_level=start,
            xp_to_next_level=start + cost - total_xp,
            cost=cost,
        )

    def level(self, total_xp: int) -> int:
        return self.level_for(total_xp).level

    def xp_for_level(self, level: int) -> int:
        '''Smallest XP total that reaches ``level``.'''
        if level < 1:
            raise ValueError(f'Levels start at 1, got {level}')
        if level <= len(self._starts):
            return self._starts[level - 1]
        return self._starts[-1] + (level - len(self._starts)) * self._costs[-1]
