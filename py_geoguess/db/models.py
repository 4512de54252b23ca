"""Database models for generated rounds."""

from sqlalchemy import Column, Integer, String, Float, DateTime, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class GeneratedRound(Base):
    """One round of a game, keyed by the game's room path and round index."""

    __tablename__ = "generated_rounds"
    __table_args__ = (
        UniqueConstraint("room_path", "round_index", name="uq_room_round"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_path = Column(String(255), nullable=False, index=True)
    round_index = Column(Integer, nullable=False)

    # Verified panorama position (WGS84 degrees)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
