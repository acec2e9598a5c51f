"""Periodic housekeeping for the bot process."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .state import BoardState
from .telemetry import get_telemetry

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Discards abandoned form state and prunes telemetry on an interval."""

    def __init__(
        self,
        state: BoardState,
        *,
        interval_minutes: int = 60,
        form_state_max_age_hours: float = 24,
        telemetry_retention_days: int = 30,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self.state = state
        self.interval_minutes = interval_minutes
        self.form_state_max_age = timedelta(hours=form_state_max_age_hours)
        self.telemetry_retention_days = telemetry_retention_days
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_maintenance,
            "interval",
            minutes=self.interval_minutes,
            id="maintenance",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Maintenance scheduler running every %d minutes", self.interval_minutes)

    def run_maintenance(self) -> Dict[str, int]:
        purged = self.state.purge_form_state(self.form_state_max_age)
        telemetry = get_telemetry()
        telemetry.track_system_event(
            "maintenance", source="scheduler", reason=f"purged {purged} form state entries"
        )
        telemetry.flush()
        pruned = telemetry.cleanup_old_data(days_to_keep=self.telemetry_retention_days)
        return {"purged_form_state": purged, "pruned_metrics": pruned}

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)


__all__ = ["MaintenanceScheduler"]
