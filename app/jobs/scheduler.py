"""
Background scheduler — fires the auto-close sweep once a day.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.services.auto_close import run_auto_close

logger = logging.getLogger(__name__)

AUTO_CLOSE_JOB_ID = "auto-close-punches"


async def _auto_close_job() -> None:
    logger.info("Starting auto-close sweep")
    result = await run_auto_close()
    if result is not None:
        logger.info("Auto-close sweep finished: %d closed", result.closed)


def create_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(
        timezone=settings.tzinfo,
        job_defaults={
            "coalesce": True,
            "misfire_grace_time": 3600,
        },
    )
    scheduler.add_job(
        _auto_close_job,
        CronTrigger(hour=settings.AUTO_CLOSE_HOUR, minute=0, timezone=settings.tzinfo),
        id=AUTO_CLOSE_JOB_ID,
        replace_existing=True,
    )
    return scheduler
