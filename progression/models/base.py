from contextlib import contextmanager
from typing import Any, ClassVar, Iterable, Iterator, Optional, Sequence, cast

from psycopg.types.json import Jsonb

from progression.database.db_manager import DBManager


@contextmanager
def _session(db: Optional[DBManager]) -> Iterator[DBManager]:
    '''Join the caller's transaction, or run in a fresh one.'''
    if db is not None:
        yield db
        return
    with DBManager() as own:
        yield own


def _adapt(value: Any) -> Any:
    # dicts and lists go to JSONB columns
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


class BaseModel:
    table: ClassVar[str]
    pk: ClassVar[str] = 'id'

    @classmethod
    def get(
        cls, id_value: Any, db: Optional[DBManager] = None
    ) -> Optional[dict[str, Any]]:
        with _session(db) as s:
            row = s.fetchone(
                f'SELECT * FROM {cls.table} WHERE {cls.pk} = %s', (id_value,)
            )
        return cast(Optional[dict[str, Any]], row)

    @classmethod
    def get_one(
        cls, where: str, params: Iterable[Any] = (), db: Optional[DBManager] = None
    ) -> Optional[dict[str, Any]]:
        where_clause = f' WHERE {where}' if where else ''
        with _session(db) as s:
            row = s.fetchone(
                f'SELECT * FROM {cls.table}{where_clause} LIMIT 1', tuple(params)
            )
        return cast(Optional[dict[str, Any]], row)

    @classmethod
    def get_many(
        cls,
        where: str = '',
        params: Iterable[Any] = (),
        order_by: str = '',
        limit: Optional[int] = None,
        db: Optional[DBManager] = None,
    ) -> list[dict[str, Any]]:
        query_parts: list[str] = [f'SELECT * FROM {cls.table}']
        parameters: tuple[Any, ...] = tuple(params)

        if where:
            query_parts.append(f'WHERE {where}')
        if order_by:
            query_parts.append(f'ORDER BY {order_by}')
        if limit is not None:
            query_parts.append('LIMIT %s')
            parameters = (*parameters, limit)

        with _session(db) as s:
            rows = s.fetchall(' '.join(query_parts), parameters)
        return cast(list[dict[str, Any]], rows)

    @classmethod
    def create(
        cls, values: dict[str, Any], db: Optional[DBManager] = None
    ) -> dict[str, Any]:
        cols = list(values.keys())
        placeholders = ', '.join(['%s'] * len(cols))
        sql = (
            f'INSERT INTO {cls.table} ({", ".join(cols)}) '
            f'VALUES ({placeholders}) RETURNING *'
        )
        with _session(db) as s:
            rows = s.fetchall(sql, tuple(_adapt(values[c]) for c in cols))
        return cast(dict[str, Any], rows[0]) if rows else {}

    @classmethod
    def insert_ignore(
        cls,
        conflict_cols: Sequence[str],
        values: dict[str, Any],
        db: Optional[DBManager] = None,
    ) -> None:
        '''Insert unless a row with the same conflict key already exists.'''
        cols = list(values.keys())
        placeholders = ', '.join(['%s'] * len(cols))
        sql = (
            f'INSERT INTO {cls.table} ({", ".join(cols)}) VALUES ({placeholders}) '
            f'ON CONFLICT ({", ".join(conflict_cols)}) DO NOTHING'
        )
        with _session(db) as s:
            s.execute(sql, tuple(_adapt(values[c]) for c in cols))

    @classmethod
    def upsert(
        cls,
        conflict_cols: Sequence[str],
        values: dict[str, Any],
        db: Optional[DBManager] = None,
    ) -> dict[str, Any]:
        cols = list(values.keys())
        placeholders = ', '.join(['%s'] * len(cols))
        set_clause = ', '.join(
            f'{c} = EXCLUDED.{c}' for c in cols if c not in conflict_cols
        )
        if not set_clause:
            # Every column is part of the key; touch the row to get RETURNING
            set_clause = f'{cls.pk} = {cls.table}.{cls.pk}'
        sql = (
            f'INSERT INTO {cls.table} ({", ".join(cols)}) VALUES ({placeholders}) '
            f'ON CONFLICT ({", ".join(conflict_cols)}) DO UPDATE SET {set_clause} '
            'RETURNING *'
        )
        with _session(db) as s:
            rows = s.fetchall(sql, tuple(_adapt(values[c]) for c in cols))
        return cast(dict[str, Any], rows[0]) if rows else {}
