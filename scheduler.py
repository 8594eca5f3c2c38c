"""
Scheduler - Automated ingestion and classification

Current Setup:
- Full pipeline (FDA + SEC ingest, then queue processing) runs every
  PIPELINE_INTERVAL_MINUTES
- Runs never overlap; a tick that fires while a run is in progress is skipped

Usage:
    python scheduler.py              # Run scheduler daemon
    python scheduler.py --once       # Run pipeline once and exit
    python scheduler.py --health     # Check database and queue, then exit
"""
import asyncio
import sys
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings, ensure_directories
from database import init_database_async, get_table_counts_async, get_session, close_engine
from repositories import QueueRepository
from utils import logger, init_logging, setup_logging


class CatalystScheduler:
    """
    Scheduler for the regulatory announcement pipeline.

    One interval job runs ingestion for both feed families followed by
    classification of the pending queue.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._last_run_result = None

    def setup(self):
        """Setup scheduled jobs."""
        ensure_directories()

        self.scheduler.add_job(
            self.run_full_pipeline,
            IntervalTrigger(minutes=settings.PIPELINE_INTERVAL_MINUTES),
            id="full_pipeline",
            name="Full Pipeline (Ingest + Classify)",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now() + timedelta(minutes=1)  # First run in 1 minute
        )

        logger.info("Scheduler setup complete")
        self._log_schedule()

    def _log_schedule(self):
        """Log current job schedule."""
        jobs = self.scheduler.get_jobs()
        logger.info(f"Scheduled jobs ({len(jobs)}):")
        for job in jobs:
            logger.info(f"  - {job.name}: {job.trigger}")

    async def run_full_pipeline(self):
        """Job: ingest FDA and SEC feeds, then process the queue."""
        if not settings.PIPELINE_ENABLED:
            logger.info("Pipeline disabled (PIPELINE_ENABLED=false), skipping run")
            return False

        logger.info("Starting full pipeline run...")

        try:
            from processor.pipeline import run_pipeline

            await init_database_async()
            result = await run_pipeline(source="both")
            self._last_run_result = result

            stats = result.get("stats", {})
            if result.get("status") == "no_new":
                logger.info(f"Pipeline complete: {result.get('message')}")
            else:
                logger.info(f"Pipeline complete: {stats.get('enqueued', 0)} enqueued, "
                            f"{stats.get('published', 0)} published, {stats.get('failed', 0)} failed")
            return True

        except Exception as e:
            logger.exception(f"Pipeline run failed: {e}")
            return False

    async def check_health(self):
        """Report table and queue counts."""
        try:
            await init_database_async()
            counts = await get_table_counts_async()
            async with get_session() as session:
                queue = await QueueRepository(session).count_by_status()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

        logger.info(f"Database: {settings.DATABASE_PATH}")
        for table, count in counts.items():
            logger.info(f"  {table}: {count}")
        logger.info(f"Queue: {queue}")
        return True

    def start(self):
        """Start the scheduler."""
        self.setup()
        self.scheduler.start()
        logger.info("Scheduler started - Press Ctrl+C to stop")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def run_once(self):
        """Run the full pipeline once and exit."""
        logger.info("Running pipeline once...")
        result = asyncio.run(self._run_and_close(self.run_full_pipeline()))

        if result:
            logger.info("Pipeline completed successfully")
        else:
            logger.error("Pipeline failed")

        return result

    def run_health(self):
        """Run the health check and exit."""
        return asyncio.run(self._run_and_close(self.check_health()))

    @staticmethod
    async def _run_and_close(job):
        try:
            return await job
        finally:
            await close_engine()


async def _serve(scheduler: CatalystScheduler):
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await close_engine()


def run_scheduler():
    """Run the scheduler as main process."""
    scheduler = CatalystScheduler()
    try:
        asyncio.run(_serve(scheduler))
    except (KeyboardInterrupt, SystemExit):
        logger.info("Received shutdown signal")


def main():
    """Main entry point with CLI arguments."""
    import argparse

    parser = argparse.ArgumentParser(description="Regulatory Catalyst Scheduler")
    parser.add_argument("--once", action="store_true", help="Run pipeline once and exit")
    parser.add_argument("--health", action="store_true", help="Check database and queue, then exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    # Configure logging
    if args.verbose:
        ensure_directories()
        setup_logging(log_dir=settings.LOG_DIR, log_level="DEBUG", app_name="scheduler")
        logger.debug("Verbose mode enabled")
    else:
        init_logging(app_name="scheduler")

    scheduler = CatalystScheduler()

    if args.health:
        sys.exit(0 if scheduler.run_health() else 1)
    elif args.once:
        result = scheduler.run_once()
        sys.exit(0 if result else 1)
    else:
        # Run as daemon
        run_scheduler()


if __name__ == "__main__":
    main()
