"""
Celery Tasks Module.

Sub-modules:
- retention_tasks: periodic auto-close and auto-delete of alerts
"""
from __future__ import annotations

from .retention_tasks import (
    auto_close_alerts,
    auto_delete_alerts,
)

__all__ = [
    "auto_close_alerts",
    "auto_delete_alerts",
]
