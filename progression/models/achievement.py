from typing import Any, Iterable, Optional

import psycopg

from progression.achievements.catalog import AchievementDefinition
from progression.database.db_manager import DBManager
from progression.exceptions import PersistenceError
from progression.models.base import BaseModel


class Achievement(BaseModel):
    table = 'achievements'

    @classmethod
    def upsert_definition(
        cls, definition: AchievementDefinition, db: Optional[DBManager] = None
    ) -> dict[str, Any]:
        return cls.upsert(
            ('id',),
            {
                'id': definition.id,
                'title': definition.title,
                'description': definition.description,
                'type': definition.type.value,
                'icon': definition.icon,
                'badge_color': definition.badge_color,
                'requirements': definition.requirements.to_dict(),
                'xp_reward': int(definition.xp_reward),
                'is_active': True,
            },
            db=db,
        )

    @classmethod
    def active(cls, db: Optional[DBManager] = None) -> list[dict[str, Any]]:
        return cls.get_many(
            where='is_active = TRUE', order_by='created_at ASC, id ASC', db=db
        )

    @classmethod
    def by_title(
        cls, title: str, db: Optional[DBManager] = None
    ) -> Optional[dict[str, Any]]:
        return cls.get_one('title = %s AND is_active = TRUE', (title,), db=db)


class AchievementTable:
    '''Dynamic catalog tier backed by the ``achievements`` table.'''

    def definitions(self) -> Iterable[AchievementDefinition]:
        try:
            rows = Achievement.active()
        except psycopg.Error as e:
            raise PersistenceError('Failed to load stored achievements') from e
        return [AchievementDefinition.from_row(r) for r in rows]

    def lookup(self, title: str) -> Optional[AchievementDefinition]:
        try:
            row = Achievement.by_title(title)
        except psycopg.Error as e:
            raise PersistenceError(
                'Failed to look up stored achievement', {'title': title}
            ) from e
        return AchievementDefinition.from_row(row) if row else None
