from typing import Any

from progression.exceptions import UnknownCategory
from progression.utils.constants import CATEGORIES, CATEGORY_RANKS, Category


def parse_category(value: Any) -> Category:
    '''Coerce a category key into the closed Category set.'''
    if isinstance(value, Category):
        return value
    if isinstance(value, str):
        try:
            return Category(value.strip().lower())
        except ValueError:
            pass
    raise UnknownCategory(
        f'Unknown category: {value!r}',
        {'category': value, 'allowed': [c.value for c in CATEGORIES]},
    )


def xp_to_rank(xp: int) -> str:
    amount = max(0, int(xp))
    for th, name in CATEGORY_RANKS:
        if amount >= th:
            return name
    return CATEGORY_RANKS[-1][1]
