from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from progression.utils.constants import CATEGORIES, Category
from progression.utils.helper import parse_category


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CategoryProgress:
    level: int = 1
    xp: int = 0
    unlocked_exercises: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            'level': self.level,
            'xp': self.xp,
            'unlocked_exercises': sorted(self.unlocked_exercises),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> 'CategoryProgress':
        data = data or {}
        return cls(
            level=int(data.get('level', 1)),
            xp=int(data.get('xp', 0)),
            unlocked_exercises={str(e) for e in data.get('unlocked_exercises') or ()},
        )


@dataclass
class XpTransaction:
    '''One ledger entry; ``id`` is assigned once the entry is persisted.'''

    amount: int
    source: str
    category: Optional[Category] = None
    date: datetime = field(default_factory=utcnow)
    description: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'XpTransaction':
        category = row.get('category')
        return cls(
            id=row.get('id'),
            amount=int(row['amount']),
            source=row['source'],
            category=parse_category(category) if category else None,
            date=row['created_at'],
            description=row.get('description'),
        )


def default_categories() -> dict[Category, CategoryProgress]:
    return {c: CategoryProgress() for c in CATEGORIES}


@dataclass
class UserProgress:
    user_id: str
    total_xp: int = 0
    level: int = 1
    category_progress: dict[Category, CategoryProgress] = field(
        default_factory=default_categories
    )
    unlocked_achievement_ids: list[str] = field(default_factory=list)
    xp_history: list[XpTransaction] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utcnow)
    # Revision used for compare-and-save; owned by the repository
    version: int = 0

    @classmethod
    def default(cls, user_id: str, now: Optional[datetime] = None) -> 'UserProgress':
        return cls(user_id=str(user_id), last_updated=now or utcnow())

    def category(self, category: Category | str) -> CategoryProgress:
        return self.category_progress[parse_category(category)]

    def has_unlocked(self, achievement_id: str) -> bool:
        return achievement_id in self.unlocked_achievement_ids

    @property
    def pending_transactions(self) -> list[XpTransaction]:
        return [tx for tx in self.xp_history if tx.id is None]

    def clone(self) -> 'UserProgress':
        return copy.deepcopy(self)

    def to_row(self) -> dict[str, Any]:
        return {
            'user_id': self.user_id,
            'total_xp': self.total_xp,
            'level': self.level,
            'category_progress': {
                c.value: p.to_dict() for c, p in self.category_progress.items()
            },
            'unlocked_achievement_ids': list(self.unlocked_achievement_ids),
            'last_updated': self.last_updated,
        }

    @classmethod
    def from_row(
        cls, row: dict[str, Any], history: list[dict[str, Any]] | None = None
    ) -> 'UserProgress':
        stored = row.get('category_progress') or {}
        categories = default_categories()
        for key, value in stored.items():
            categories[parse_category(key)] = CategoryProgress.from_dict(value)
        return cls(
            user_id=str(row['user_id']),
            total_xp=int(row['total_xp']),
            level=int(row['level']),
            category_progress=categories,
            unlocked_achievement_ids=[
                str(i) for i in row.get('unlocked_achievement_ids') or []
            ],
            xp_history=[XpTransaction.from_row(h) for h in history or []],
            last_updated=row['last_updated'],
            version=int(row.get('version', 0)),
        )
