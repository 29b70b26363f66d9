"""Daily trigger for the summary job."""

from __future__ import annotations

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.models import parse_clock
from coach_queue.use_cases.publish_summary import SummaryPublisher

logger = get_logger(__name__)

DAILY_SUMMARY_JOB_ID = "daily_summary"
MISFIRE_GRACE_SECONDS = 3600


def create_summary_scheduler(
    publisher: SummaryPublisher, summary_time: str, tz: pytz.BaseTzInfo
) -> BackgroundScheduler:
    """Create (not start) a scheduler firing the digest once a day at local time."""

    hour, minute = divmod(parse_clock(summary_time), 60)
    scheduler = BackgroundScheduler(timezone=tz)

    def _run() -> None:
        try:
            publisher.run_daily_summary_job(trigger="schedule")
        except Exception:  # noqa: BLE001
            logger.exception("daily_summary_job_failed")

    scheduler.add_job(
        _run,
        CronTrigger(hour=hour, minute=minute, timezone=tz),
        id=DAILY_SUMMARY_JOB_ID,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=MISFIRE_GRACE_SECONDS,
        replace_existing=True,
    )
    logger.info(
        "daily_summary_scheduled",
        time=summary_time,
        timezone=tz.zone,
    )
    return scheduler


__all__ = ["DAILY_SUMMARY_JOB_ID", "create_summary_scheduler"]
