"""
Background task scheduler for the wager ledger.

This module provides scheduled background jobs for:
- Event cache refresh from the sports_events table
- Parlay resolution retries for completed events

Scheduler: APScheduler (lightweight, FastAPI-compatible). Jobs are plain
functions; the AsyncIOScheduler runs them on the event loop's thread pool so
database work never blocks request handling.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wager_ledger.core.metrics import scheduler_running
from wager_ledger.services.container import WagerServices

logger = logging.getLogger(__name__)


class LedgerScheduler:
    """
    Scheduler for the ledger's periodic jobs.

    Both jobs are safe to run at any time: a cache refresh only replaces the
    read-side copy of events, and resolution is idempotent.
    """

    def __init__(self, services: WagerServices, refresh_seconds: int = 60, sweep_seconds: int = 300):
        self.services = services
        self.refresh_seconds = refresh_seconds
        self.sweep_seconds = sweep_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting ledger scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Only one instance of each job
                "misfire_grace_time": 60
            }
        )

        self._schedule_cache_refresh()
        self._schedule_resolution_sweep()

        self.scheduler.start()
        self.running = True
        scheduler_running.set(1)

        logger.info("✅ Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=True)
        self.running = False
        scheduler_running.set(0)
        logger.info("✅ Scheduler stopped")

    # ========================================================================
    # Jobs
    # ========================================================================

    def refresh_event_cache(self):
        """Reload the in-memory event catalog from the database."""
        try:
            count = self.services.catalog.refresh_cache()
            logger.debug(f"Event cache refresh: {count} events")
        except Exception as e:
            logger.error(f"❌ Event cache refresh failed: {e}")

    def resolve_completed_events(self):
        """Retry settlement for completed events that still have open parlays."""
        try:
            result = self.services.parlays.resolve_completed_events()
            if result["settled"]:
                logger.info(
                    f"✅ Resolution sweep: settled {result['settled']} parlays "
                    f"across {result['events']} events"
                )
        except Exception as e:
            logger.error(f"❌ Resolution sweep failed: {e}")

    def _schedule_cache_refresh(self):
        """
        Schedule: Refresh the event cache.

        Frequency: every EVENT_CACHE_REFRESH_SECONDS (default 60s)
        Purpose: bound the staleness of odds and scores shown to users
        """
        self.scheduler.add_job(
            self.refresh_event_cache,
            trigger=IntervalTrigger(seconds=self.refresh_seconds),
            id="event_cache_refresh",
            name="Refresh Event Cache",
        )
        logger.info(f"📅 Scheduled: Event cache refresh (every {self.refresh_seconds}s)")

    def _schedule_resolution_sweep(self):
        """
        Schedule: Re-run parlay resolution for completed events.

        Frequency: every RESOLUTION_SWEEP_SECONDS (default 5 minutes)
        Purpose: settle parlays whose resolution was interrupted (storage
        failure, process restart) after their event completed
        """
        self.scheduler.add_job(
            self.resolve_completed_events,
            trigger=IntervalTrigger(seconds=self.sweep_seconds),
            id="resolution_sweep",
            name="Resolve Completed Events",
        )
        logger.info(f"📅 Scheduled: Resolution sweep (every {self.sweep_seconds}s)")

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            next_run_str = next_run.strftime("%Y-%m-%d %H:%M:%S UTC") if next_run else "Pending"
            logger.info(f"  • {job.name} (id={job.id}, next run {next_run_str})")


# Global scheduler instance
_scheduler: Optional[LedgerScheduler] = None


async def start_scheduler(services: WagerServices, refresh_seconds: int = 60, sweep_seconds: int = 300):
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = LedgerScheduler(services, refresh_seconds, sweep_seconds)
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[LedgerScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
