"""
Database package for Achievement Tracker.
"""

from .base import (
    Base,
    DocumentBase,
    create_store_engine,
    get_session_factory,
    init_databases,
)
from .models import AchievementDocumentModel, AchievementReferenceModel

__all__ = [
    "Base",
    "DocumentBase",
    "create_store_engine",
    "get_session_factory",
    "init_databases",
    "AchievementReferenceModel",
    "AchievementDocumentModel",
]
