"""
Module: db
Purpose: Database package initialization for the portal
Author: Portal Development Team
Date: 2024
"""

from portal.db.base import Base, BaseModel
from portal.db.database import db_manager, get_db, check_database_health

__all__ = [
    "Base",
    "BaseModel",
    "db_manager",
    "get_db",
    "check_database_health",
]
