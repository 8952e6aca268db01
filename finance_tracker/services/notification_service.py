"""
APScheduler-backed notification capability.

Each reminder is a one-shot job with a `DateTrigger`; the job id is the
handle handed back to callers so they can cancel it later. Jobs live in
the scheduler's memory store, so a restart drops pending alerts and turns
their handles into no-ops on cancel.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)
reminder_logger = logging.getLogger("finance_tracker.reminders")


def log_delivery(content: Dict[str, Any]) -> None:
    reminder_logger.info(
        "Reminder fired: %s | %s | data=%s",
        content.get("title"), content.get("body"), content.get("data"),
    )


class SchedulerNotifier:
    """Schedules and cancels one-shot alerts."""

    def __init__(
        self,
        scheduler: Optional[BackgroundScheduler] = None,
        deliver: Callable[[Dict[str, Any]], None] = log_delivery,
    ) -> None:
        self._scheduler = scheduler or BackgroundScheduler()
        self._deliver = deliver

    def start(self) -> None:
        if self._scheduler.running:
            logger.info("SchedulerNotifier already started; ignoring duplicate start.")
            return
        self._scheduler.start()
        logger.info("SchedulerNotifier started.")

    def stop(self) -> None:
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        logger.info("SchedulerNotifier stopped.")

    def schedule_one_shot(self, when: datetime, content: Dict[str, Any]) -> str:
        handle = uuid.uuid4().hex
        try:
            self._scheduler.add_job(
                self._fire,
                trigger=DateTrigger(run_date=when),
                args=[content],
                id=handle,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=3600,
            )
        except Exception as exc:
            raise UpstreamFailure(f"Could not schedule notification: {exc}") from exc
        logger.info("Scheduled notification %s at %s", handle, when.isoformat())
        return handle

    def cancel(self, handle: str) -> None:
        try:
            self._scheduler.remove_job(handle)
            logger.info("Cancelled notification %s", handle)
        except JobLookupError:
            logger.info("Notification %s already fired or unknown", handle)

    def _fire(self, content: Dict[str, Any]) -> None:
        try:
            self._deliver(content)
        except Exception:
            logger.exception("Notification delivery failed")
