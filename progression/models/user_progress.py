from typing import Any, Optional, cast

from psycopg.types.json import Jsonb

from progression.database.db_manager import DBManager
from progression.models.base import BaseModel, _session
from progression.models.progress import UserProgress, XpTransaction


class ProgressRecord(BaseModel):
    table = 'user_progress'
    pk = 'user_id'

    @classmethod
    def ensure(cls, progress: UserProgress, db: Optional[DBManager] = None) -> None:
        '''Insert the default row for a user unless one exists.'''
        cls.insert_ignore(('user_id',), {**progress.to_row(), 'version': 0}, db=db)

    @classmethod
    def compare_and_update(
        cls, progress: UserProgress, db: Optional[DBManager] = None
    ) -> Optional[int]:
        '''Write ``progress`` if the stored version still matches.

        Returns the new version, or None when another writer got there first.
        '''
        row = progress.to_row()
        with _session(db) as s:
            updated = s.fetchone(
                'UPDATE user_progress '
                'SET total_xp = %s, level = %s, category_progress = %s, '
                'unlocked_achievement_ids = %s, last_updated = %s, '
                'version = version + 1 '
                'WHERE user_id = %s AND version = %s '
                'RETURNING version',
                (
                    row['total_xp'],
                    row['level'],
                    Jsonb(row['category_progress']),
                    Jsonb(row['unlocked_achievement_ids']),
                    row['last_updated'],
                    row['user_id'],
                    progress.version,
                ),
            )
        return int(updated['version']) if updated else None


class XpLedgerEntry(BaseModel):
    table = 'xp_transactions'

    @classmethod
    def for_user(
        cls, user_id: str, db: Optional[DBManager] = None
    ) -> list[dict[str, Any]]:
        return cls.get_many(
            where='user_id = %s', params=(user_id,), order_by='id ASC', db=db
        )

    @classmethod
    def append(
        cls, user_id: str, tx: XpTransaction, db: Optional[DBManager] = None
    ) -> int:
        row = cls.create(
            {
                'user_id': user_id,
                'amount': tx.amount,
                'source': tx.source,
                'category': tx.category.value if tx.category else None,
                'description': tx.description,
                'created_at': tx.date,
            },
            db=db,
        )
        return int(cast(dict[str, Any], row)['id'])
