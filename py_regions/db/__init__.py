"""
Database utilities and models.

This package provides:
- SQLAlchemy model for stored regions
- Database connection management
- Save/load/delete helpers for generation results
"""

from .connection import Database, db
from .models import Base, RegionRecord
from .queries import RegionQueries, outline_to_string, parse_outline

__all__ = [
    # Connection management
    'Database', 'db',

    # Query functionality
    'RegionQueries', 'outline_to_string', 'parse_outline',

    # Models
    'Base', 'RegionRecord',
]
