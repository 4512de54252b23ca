"""Tests for the database-backed round store."""

import pytest

from py_geoguess.core.errors import StoreWriteFailure
from py_geoguess.core.types import Coordinate, Round
from py_geoguess.db.connection import Database
from py_geoguess.db.models import GeneratedRound
from py_geoguess.db.store import RoundStore


def make_rounds(offset=0.0, count=3):
    return {
        i: Round(index=i, map_position=Coordinate(lat=10.0 + i + offset, lng=20.0 - i))
        for i in range(count)
    }


class TestDatabase:
    """Test the connection manager."""

    def test_session_requires_initialize(self):
        database = Database()
        with pytest.raises(RuntimeError):
            with database.get_session():
                pass

    def test_ping(self):
        database = Database()
        database.initialize("sqlite://")
        assert database.initialized
        assert database.ping()
        database.dispose()
        assert not database.initialized


class TestRoundStore:
    """Test writing and reading round sets."""

    def setup_method(self):
        self.database = Database()
        self.database.initialize("sqlite://")
        self.store = RoundStore(self.database)

    def teardown_method(self):
        self.database.dispose()

    @pytest.mark.asyncio
    async def test_write_and_read(self):
        rounds = make_rounds()
        await self.store.write_rounds("rooms/a", rounds)
        assert await self.store.read_rounds("rooms/a") == rounds

    @pytest.mark.asyncio
    async def test_write_replaces_previous_rounds(self):
        """A second write replaces the whole round set of the room."""
        await self.store.write_rounds("rooms/a", make_rounds(count=5))
        replacement = make_rounds(offset=0.5, count=2)
        await self.store.write_rounds("rooms/a", replacement)

        assert await self.store.read_rounds("rooms/a") == replacement
        with self.database.get_session() as session:
            assert session.query(GeneratedRound).count() == 2

    @pytest.mark.asyncio
    async def test_rooms_are_isolated(self):
        await self.store.write_rounds("rooms/a", make_rounds())
        await self.store.write_rounds("rooms/b", make_rounds(offset=1.0, count=1))

        assert len(await self.store.read_rounds("rooms/a")) == 3
        assert len(await self.store.read_rounds("rooms/b")) == 1
        assert await self.store.read_rounds("rooms/c") == {}

    @pytest.mark.asyncio
    async def test_write_failure(self):
        """Database errors surface as StoreWriteFailure."""
        store = RoundStore(Database())
        with pytest.raises(StoreWriteFailure) as exc_info:
            await store.write_rounds("rooms/a", make_rounds())
        assert str(exc_info.value) == "Cannot connect to the round store."
