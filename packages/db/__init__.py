"""Database models and utilities."""

from .models import DepartmentTable, EventLogTable, ServiceRequestTable, UserTable

__all__ = [
    "DepartmentTable",
    "EventLogTable",
    "ServiceRequestTable",
    "UserTable",
]
