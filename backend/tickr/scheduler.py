"""APScheduler integration for the timer tick loop."""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

log = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """
    Build a scheduler bound to the running event loop, so every job runs on
    the same loop as the API handlers.
    """
    return AsyncIOScheduler(event_loop=asyncio.get_running_loop())


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    if not scheduler.running:
        scheduler.start()
        log.info("APScheduler started successfully")


def shutdown_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Shutdown the APScheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        log.info("APScheduler shut down successfully")
