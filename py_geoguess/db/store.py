"""
Round store backed by the relational database.

Writes replace the whole round set of a room inside one transaction, so a
reader sees either the previous set or the new one, never a mix.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Mapping

import structlog

from ..core.errors import StoreWriteFailure
from ..core.types import Coordinate, Round
from .connection import Database, db as default_db
from .models import GeneratedRound

logger = structlog.get_logger()


class RoundStore:
    """Publishes finished round sets."""

    def __init__(self, database: Database = None):
        self.database = database or default_db

    async def write_rounds(self, path: str, rounds: Mapping[int, Round]) -> None:
        """
        Replace the rounds stored at ``path``.

        Raises:
            StoreWriteFailure: If the transaction could not be committed
        """
        try:
            await asyncio.to_thread(self._write_rounds, path, dict(rounds))
        except Exception as e:
            logger.error("Failed to write rounds to db", room_path=path, error=str(e))
            raise StoreWriteFailure() from e
        logger.info("Rounds written", room_path=path, rounds=len(rounds))

    def _write_rounds(self, path: str, rounds: Dict[int, Round]) -> None:
        with self.database.get_session() as session:
            session.query(GeneratedRound).filter(GeneratedRound.room_path == path).delete(
                synchronize_session=False
            )
            session.add_all(
                [
                    GeneratedRound(
                        room_path=path,
                        round_index=index,
                        lat=round_.map_position.lat,
                        lng=round_.map_position.lng,
                    )
                    for index, round_ in sorted(rounds.items())
                ]
            )

    async def read_rounds(self, path: str) -> Dict[int, Round]:
        return await asyncio.to_thread(self._read_rounds, path)

    def _read_rounds(self, path: str) -> Dict[int, Round]:
        with self.database.get_session() as session:
            rows = (
                session.query(GeneratedRound)
                .filter(GeneratedRound.room_path == path)
                .order_by(GeneratedRound.round_index)
                .all()
            )
            return {
                row.round_index: Round(
                    index=row.round_index,
                    map_position=Coordinate(lat=row.lat, lng=row.lng),
                )
                for row in rows
            }
