"""
Module: base
Purpose: Declarative base and the columns every portal table carries
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import Column, DateTime, String, func, inspect
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )


class BaseModel(Base, TimestampMixin):
    """
    Abstract parent of every table.

    Staff and admins share the ``notifications.user_id`` space, so primary
    keys are UUID strings rather than integers.
    """

    __abstract__ = True

    id = Column(String(36), primary_key=True, default=generate_uuid)

    def to_dict(self) -> Dict[str, Any]:
        """
        Column values keyed by column name, ready for a JSON response.

        Dates become ISO strings and Decimal amounts become floats. The
        column name is used rather than the attribute key, which differs
        for ``Notification.metadata``.
        """
        data = {}
        for attr in inspect(self.__class__).column_attrs:
            value = getattr(self, attr.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = float(value)
            data[attr.columns[0].name] = value
        return data

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"
