"""
Module: models
Purpose: Database models package for the portal - clean exports only
Author: Portal Development Team
Date: 2024
"""

from portal.db.models.cashbook import CashTransaction, BranchOpeningBalance
from portal.db.models.user import Staff, Admin
from portal.db.models.notification import Notification, EmailOutboxMessage
from portal.db.models.operations import (
    Team,
    Task,
    TaskUpdateProof,
    TaskReschedule,
    AttendanceRecord,
    MaintenanceRequest,
    PurchaseRequisition,
    ScrapRequest,
    GroceryRequest,
)

__all__ = [
    # Cashbook Models
    "CashTransaction",
    "BranchOpeningBalance",

    # Account Models
    "Staff",
    "Admin",

    # Notification Models
    "Notification",
    "EmailOutboxMessage",

    # Operations Models
    "Team",
    "Task",
    "TaskUpdateProof",
    "TaskReschedule",
    "AttendanceRecord",
    "MaintenanceRequest",
    "PurchaseRequisition",
    "ScrapRequest",
    "GroceryRequest",
]
