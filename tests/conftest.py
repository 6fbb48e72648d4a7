import contextlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import pytest

from progression.achievements.catalog import (
    AchievementCatalog,
    AchievementDefinition,
    AchievementType,
    Requirements,
)
from progression.achievements.engine import ProgressionEngine
from progression.services.repository import InMemoryProgressRepository
from progression.utils.config import Settings

FROZEN_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeDB:
    fetchone_results: list[Any] = field(default_factory=list)
    fetchall_results: list[Any] = field(default_factory=list)
    executed: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)
    last_query: str | None = None
    last_params: tuple[Any, ...] | None = None
    entered: int = 0

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def _record(self, query: str, params) -> None:
        self.last_query = query
        self.last_params = tuple(params or ())
        self.queries.append(query)

    def fetchone(self, query: str, params=None):
        self._record(query, params)
        if self.fetchone_results:
            return self.fetchone_results.pop(0)
        return None

    def fetchall(self, query: str, params=None):
        self._record(query, params)
        if self.fetchall_results:
            return self.fetchall_results.pop(0)
        return []

    def execute(self, query: str, params=None) -> None:
        self._record(query, params)
        self.executed.append((query, tuple(params or ())))


class FakeDBManager:
    def __init__(self, db: FakeDB):
        self._db = db

    def __call__(self):
        return self._db


@contextlib.contextmanager
def patched_dbmanager(monkeypatch, target_module, db: FakeDB) -> Iterator[FakeDB]:
    monkeypatch.setattr(target_module, 'DBManager', FakeDBManager(db))
    yield db


def definition(
    id: str,
    xp_reward: int = 50,
    title: Optional[str] = None,
    **requirements: Any,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=id,
        title=title or id.replace('_', ' ').title(),
        description=f'Test achievement {id}',
        type=AchievementType.MILESTONE,
        requirements=Requirements(**requirements),
        xp_reward=xp_reward,
        icon='award',
    )


@pytest.fixture()
def fake_db() -> FakeDB:
    return FakeDB()


@pytest.fixture()
def repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture()
def make_engine(repository):
    '''Engine factory over the in-memory repository with a frozen clock.'''

    def _make(
        definitions=None, repo=None, **settings: Any
    ) -> ProgressionEngine:
        catalog = (
            AchievementCatalog(definitions) if definitions is not None else None
        )
        return ProgressionEngine(
            repository=repo if repo is not None else repository,
            catalog=catalog,
            settings=Settings(**settings),
            clock=lambda: FROZEN_NOW,
        )

    return _make


@pytest.fixture()
def engine(make_engine) -> ProgressionEngine:
    return make_engine()
