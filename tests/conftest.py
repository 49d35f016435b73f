"""
Pytest configuration and shared fixtures.

This module provides:
- A file-backed SQLite database per test (sqlite+aiosqlite in tmp_path)
- Session factory and Unit of Work fixtures
- A recording domain event dispatcher
"""

from typing import List

import pytest

from hybridrepo.core.database import create_engine, create_session_factory
from hybridrepo.models import Base, BaseEntity, BaseEvent
from hybridrepo.repositories import UnitOfWork
from hybridrepo.services.interfaces import IDomainEventDispatcher

import sample_models  # noqa: F401 - registers the sample tables on Base.metadata


class RecordingDispatcher(IDomainEventDispatcher):
    """Dispatcher double that records every call and the events it cleared."""

    def __init__(self):
        self.calls: List[List[BaseEntity]] = []
        self.events: List[BaseEvent] = []

    async def dispatch_and_clear(self, entities) -> int:
        entities = list(entities)
        self.calls.append(entities)
        delivered = 0
        for entity in entities:
            taken = entity.take_domain_events()
            self.events.extend(taken)
            delivered += len(taken)
        return delivered


@pytest.fixture
async def engine(tmp_path):
    """
    Provide an engine on a fresh SQLite file.

    Creates all sample tables before the test and disposes the pool after.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'hybridrepo.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def recording_dispatcher():
    return RecordingDispatcher()


@pytest.fixture
async def make_uow(session_factory, recording_dispatcher):
    """
    Factory for Units of Work sharing the recording dispatcher.

    Every Unit of Work created through it is disposed at teardown.
    """
    created: List[UnitOfWork] = []

    def _make(dispatcher=recording_dispatcher) -> UnitOfWork:
        uow = UnitOfWork(session_factory(), dispatcher)
        created.append(uow)
        return uow

    yield _make

    for uow in created:
        await uow.dispose()


@pytest.fixture
async def uow(make_uow):
    return make_uow()
