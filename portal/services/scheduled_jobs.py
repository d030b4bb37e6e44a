"""
Academic Term Portal
Scheduled Jobs — concrete job implementations run by SchedulerService.

Jobs:
    - window_status_reconciler: refreshes the materialized window status cache
"""

from __future__ import annotations

import logging
from typing import Any

from portal.services import window_repository
from portal.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("window_status_reconciler")
def reconcile_window_statuses(app) -> dict[str, Any]:
    """Recompute upcoming/active/ended for every window and cache the result."""
    summary = window_repository.reconcile_statuses()
    if summary["updated"]:
        logger.info(
            "Window status reconciliation: %d checked, %d updated (%d activated, %d ended)",
            summary["checked"], summary["updated"], summary["activated"], summary["ended"],
        )
    return summary
