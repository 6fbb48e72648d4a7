from datetime import datetime, timezone

import psycopg
import pytest
from psycopg.types.json import Jsonb

import progression.models.base as base_module
from progression.exceptions import ConcurrentUpdateError, PersistenceError
from progression.models.progress import UserProgress, XpTransaction
from progression.models.user_progress import ProgressRecord
from progression.services.repository import (
    InMemoryProgressRepository,
    PostgresProgressRepository,
    ProgressRepository,
)
from progression.utils.constants import Category
from tests.conftest import FakeDB, FakeDBManager, patched_dbmanager

UPDATED = datetime(2026, 2, 1, 8, 30, tzinfo=timezone.utc)


def _row(**overrides):
    row = {
        'user_id': 'u1',
        'total_xp': 1250,
        'level': 2,
        'category_progress': {
            'push': {'level': 2, 'xp': 1200, 'unlocked_exercises': ['pushup']},
            'core': {'level': 1, 'xp': 50},
        },
        'unlocked_achievement_ids': ['global_level_2'],
        'last_updated': UPDATED,
        'version': 3,
    }
    row.update(overrides)
    return row


def _ledger_row(id, amount, source, category=None):
    return {
        'id': id,
        'user_id': 'u1',
        'amount': amount,
        'source': source,
        'category': category,
        'description': None,
        'created_at': UPDATED,
    }


class _BrokenDB(FakeDB):
    def fetchone(self, query, params=None):
        raise psycopg.OperationalError('server closed the connection')

    def execute(self, query, params=None):
        raise psycopg.OperationalError('server closed the connection')


def test_both_repositories_satisfy_protocol():
    assert isinstance(InMemoryProgressRepository(), ProgressRepository)
    assert isinstance(PostgresProgressRepository(), ProgressRepository)


def test_load_returns_none_for_unknown_user(fake_db):
    repo = PostgresProgressRepository(FakeDBManager(fake_db))
    assert repo.load('nobody') is None
    assert 'FROM user_progress' in fake_db.last_query


def test_load_or_create_ensures_row_then_reads(fake_db):
    fake_db.fetchone_results = [_row()]
    fake_db.fetchall_results = [
        [_ledger_row(1, 1200, 'workout', 'push'), _ledger_row(2, 50, 'achievement')]
    ]
    repo = PostgresProgressRepository(FakeDBManager(fake_db))

    progress = repo.load_or_create('u1')

    insert_sql, insert_params = fake_db.executed[0]
    assert 'ON CONFLICT (user_id) DO NOTHING' in insert_sql
    assert insert_params[0] == 'u1'
    assert any(isinstance(p, Jsonb) for p in insert_params)
    assert fake_db.entered == 1

    assert progress.version == 3
    assert progress.total_xp == 1250
    assert progress.category(Category.PUSH).unlocked_exercises == {'pushup'}
    assert progress.category(Category.LEGS).xp == 0
    assert [tx.id for tx in progress.xp_history] == [1, 2]
    assert progress.xp_history[0].category is Category.PUSH
    assert progress.pending_transactions == []


def test_save_writes_with_version_check_and_appends_ledger(fake_db):
    fake_db.fetchone_results = [{'version': 4}]
    fake_db.fetchall_results = [[{'id': 11}], [{'id': 12}]]
    repo = PostgresProgressRepository(FakeDBManager(fake_db))

    progress = UserProgress.from_row(_row(), [_ledger_row(1, 1200, 'workout')])
    progress.xp_history.append(XpTransaction(30, 'workout', Category.PULL))
    progress.xp_history.append(XpTransaction(50, 'achievement'))

    saved = repo.save(progress)

    update_sql = fake_db.queries[0]
    assert 'version = version + 1' in update_sql
    assert 'WHERE user_id = %s AND version = %s' in update_sql
    assert fake_db.queries[1].startswith('INSERT INTO xp_transactions')
    assert fake_db.last_params[:4] == ('u1', 50, 'achievement', None)

    assert saved.version == 4
    assert [tx.id for tx in saved.xp_history] == [1, 11, 12]
    # caller's copy is left alone
    assert progress.version == 3
    assert len(progress.pending_transactions) == 2


def test_save_conflict_raises_without_touching_ledger(fake_db):
    fake_db.fetchone_results = [None]
    repo = PostgresProgressRepository(FakeDBManager(fake_db))
    progress = UserProgress.from_row(_row())
    progress.xp_history.append(XpTransaction(30, 'workout'))

    with pytest.raises(ConcurrentUpdateError) as exc:
        repo.save(progress)

    assert exc.value.details == {'user_id': 'u1', 'expected_version': 3}
    assert all('xp_transactions' not in q for q in fake_db.queries)


@pytest.mark.parametrize('call', ['load', 'load_or_create'])
def test_driver_errors_become_persistence_errors(call):
    repo = PostgresProgressRepository(FakeDBManager(_BrokenDB()))
    with pytest.raises(PersistenceError) as exc:
        getattr(repo, call)('u1')
    assert not isinstance(exc.value, ConcurrentUpdateError)
    assert isinstance(exc.value.__cause__, psycopg.OperationalError)


def test_save_driver_error_becomes_persistence_error():
    repo = PostgresProgressRepository(FakeDBManager(_BrokenDB()))
    with pytest.raises(PersistenceError):
        repo.save(UserProgress.from_row(_row()))


def test_models_open_their_own_session_without_db(monkeypatch, fake_db):
    fake_db.fetchone_results = [{'version': 1}]
    with patched_dbmanager(monkeypatch, base_module, fake_db):
        version = ProgressRecord.compare_and_update(UserProgress.default('u9'))
    assert version == 1
    assert fake_db.entered == 1
    params = fake_db.last_params
    assert isinstance(params[2], Jsonb)
    assert params[-2:] == ('u9', 0)
