"""
Database utilities and models.

This package provides:
- SQLAlchemy model for generated rounds
- Database connection management
- The round store used to publish finished games
"""

from .connection import Database, db
from .models import Base, GeneratedRound
from .store import RoundStore

__all__ = [
    # Connection management
    'Database', 'db',

    # Publishing
    'RoundStore',

    # Models
    'Base', 'GeneratedRound',
]
