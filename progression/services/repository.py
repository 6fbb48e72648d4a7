from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol, runtime_checkable

import psycopg

from progression.database.db_manager import DBManager
from progression.exceptions import ConcurrentUpdateError, PersistenceError
from progression.models.progress import UserProgress
from progression.models.user_progress import ProgressRecord, XpLedgerEntry

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressRepository(Protocol):
    '''Storage for per-user progress records.

    ``save`` is a compare-and-save: it succeeds only if the stored version
    still equals ``progress.version``, bumps the version, persists pending
    ledger entries and returns the stored record. Otherwise it raises
    ConcurrentUpdateError and nothing is written.
    '''

    def load(self, user_id: str) -> Optional[UserProgress]:
        pass

    def load_or_create(self, user_id: str) -> UserProgress:
        pass

    def save(self, progress: UserProgress) -> UserProgress:
        pass


class InMemoryProgressRepository:
    '''Process-local repository; callers always get private copies.'''

    def __init__(self) -> None:
        self._records: dict[str, UserProgress] = {}
        self._lock = threading.Lock()
        self._next_tx_id = 1

    def load(self, user_id: str) -> Optional[UserProgress]:
        with self._lock:
            stored = self._records.get(str(user_id))
            return stored.clone() if stored is not None else None

    def load_or_create(self, user_id: str) -> UserProgress:
        key = str(user_id)
        with self._lock:
            stored = self._records.get(key)
            if stored is None:
                stored = UserProgress.default(key)
                self._records[key] = stored
                logger.debug(f'Created default progress for user {key}')
            return stored.clone()

    def save(self, progress: UserProgress) -> UserProgress:
        with self._lock:
            stored = self._records.get(progress.user_id)
            current = stored.version if stored is not None else 0
            if current != progress.version:
                raise ConcurrentUpdateError(
                    'Progress was modified concurrently',
                    {
                        'user_id': progress.user_id,
                        'expected_version': progress.version,
                        'stored_version': current,
                    },
                )
            saved = progress.clone()
            for tx in saved.pending_transactions:
                tx.id = self._next_tx_id
                self._next_tx_id += 1
            saved.version = current + 1
            self._records[saved.user_id] = saved
            return saved.clone()


class PostgresProgressRepository:
    '''Progress stored in ``user_progress`` with the ledger in ``xp_transactions``.'''

    def __init__(self, db_factory: Optional[Callable[[], DBManager]] = None) -> None:
        self._db_factory = db_factory

    def _connect(self) -> DBManager:
        return (self._db_factory or DBManager)()

    def _read(self, db: DBManager, user_id: str) -> Optional[UserProgress]:
        row = ProgressRecord.get(user_id, db=db)
        if row is None:
            return None
        return UserProgress.from_row(row, XpLedgerEntry.for_user(user_id, db=db))

    def load(self, user_id: str) -> Optional[UserProgress]:
        try:
            with self._connect() as db:
                return self._read(db, str(user_id))
        except psycopg.Error as e:
            raise PersistenceError(
                'Failed to load progress', {'user_id': str(user_id)}
            ) from e

    def load_or_create(self, user_id: str) -> UserProgress:
        key = str(user_id)
        try:
            with self._connect() as db:
                ProgressRecord.ensure(UserProgress.default(key), db=db)
                progress = self._read(db, key)
        except psycopg.Error as e:
            raise PersistenceError('Failed to load progress', {'user_id': key}) from e
        if progress is None:
            raise PersistenceError(
                'Progress row missing right after insert', {'user_id': key}
            )
        return progress

    def save(self, progress: UserProgress) -> UserProgress:
        pending = progress.pending_transactions
        try:
            with self._connect() as db:
                version = ProgressRecord.compare_and_update(progress, db=db)
                if version is None:
                    # Raising inside the block rolls the transaction back
                    raise ConcurrentUpdateError(
                        'Progress was modified concurrently',
                        {
                            'user_id': progress.user_id,
                            'expected_version': progress.version,
                        },
                    )
                ids = [
                    XpLedgerEntry.append(progress.user_id, tx, db=db)
                    for tx in pending
                ]
        except psycopg.Error as e:
            raise PersistenceError(
                'Failed to save progress', {'user_id': progress.user_id}
            ) from e

        saved = progress.clone()
        for tx, tx_id in zip(saved.pending_transactions, ids):
            tx.id = tx_id
        saved.version = version
        return saved
