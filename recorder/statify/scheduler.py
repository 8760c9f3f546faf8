"""
Timer scheduler shared by the token refresher and the state poller
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class Scheduler:
    """One-shot timer interface; recurring tasks re-arm themselves after each firing"""

    def start(self) -> None:
        raise NotImplementedError

    def schedule(self, name: str, func: Callable[[], None], delay_s: float) -> None:
        """Run ``func`` once, ``delay_s`` seconds from now"""
        raise NotImplementedError

    def shutdown(self, wait: bool = True) -> None:
        raise NotImplementedError


class ApschedulerScheduler(Scheduler):
    """Scheduler backed by an APScheduler BackgroundScheduler"""

    def __init__(self, workers: int = 2):
        self._scheduler = BackgroundScheduler(
            executors={'default': ThreadPoolExecutor(max_workers=workers)},
            job_defaults={'coalesce': True, 'max_instances': 1},
            timezone='UTC',
        )

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started")

    def schedule(self, name: str, func: Callable[[], None], delay_s: float) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(0.0, delay_s))
        self._scheduler.add_job(
            func,
            trigger='date',
            run_date=run_date,
            name=name,
            misfire_grace_time=None  # a late timer still fires
        )
        logger.debug(f"Scheduled {name} in {delay_s:.1f}s")

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")
