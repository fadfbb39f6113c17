"""
Enscope - Core Package
======================

Configuration, persistence, models and schemas.
"""

from enscope.core.config import settings
from enscope.core.database import Base, Database, get_db

__all__ = ["Base", "Database", "get_db", "settings"]
