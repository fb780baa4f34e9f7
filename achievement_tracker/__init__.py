"""
Achievement Tracker

Student achievement lifecycle service: drafting, submission and advisor
verification across a reference authority store and a content store.
"""

import importlib.metadata

__version__ = importlib.metadata.version("achievement-tracker")

from .achievements import (
    AccessPolicy,
    AchievementCoordinator,
    AchievementType,
    Role,
    Status,
)

__all__ = [
    "AccessPolicy",
    "AchievementCoordinator",
    "AchievementType",
    "Role",
    "Status",
]
