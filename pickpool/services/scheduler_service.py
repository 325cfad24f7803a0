"""
Background scheduler for feed sync and grading

Two interval jobs run on APScheduler: an odds/scores sync (followed by a
grading pass so newly final games are graded right away) and a standalone
grading pass. Jobs never overlap themselves and never raise; failures are
logged and counted so the next run retries.
"""

import atexit
import logging
from contextlib import nullcontext
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import has_app_context

from pickpool import db
from pickpool.utils.data_sync import OddsSyncEngine
from pickpool.utils.scoring import GradingEngine
from pickpool.utils.teams import unmapped_team_counts

logger = logging.getLogger(__name__)


def _empty_stats():
    return {
        "last_sync": None,
        "total_syncs": 0,
        "successful_syncs": 0,
        "failed_syncs": 0,
        "last_error": None,
        "games_updated": 0,
        "picks_graded": 0,
    }


class SchedulerService:
    """Manages background sync and grading jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.sync_stats = _empty_stats()

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()
        else:
            logger.info("Scheduler disabled by configuration")

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        self.scheduler.remove_all_jobs()
        self._add_core_jobs()
        self.scheduler.start()
        self.is_running = True

        logger.info("Scheduler started successfully")

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        config = self.app.config

        self.scheduler.add_job(
            func=self._sync_odds,
            trigger=IntervalTrigger(minutes=config.get("ODDS_SYNC_INTERVAL_MINUTES", 60)),
            id="sync_odds",
            name="Sync Odds and Scores",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        self.scheduler.add_job(
            func=self._grade_picks,
            trigger=IntervalTrigger(minutes=config.get("GRADING_INTERVAL_MINUTES", 5)),
            id="grade_picks",
            name="Grade Final Games",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        logger.info("Core scheduled jobs added")

    def _job_context(self):
        """App context for a job; manual runs reuse the caller's"""
        if has_app_context():
            return nullcontext()
        return self.app.app_context()

    def _sync_odds(self):
        """Pull the feed, upsert games, then grade"""
        with self._job_context():
            try:
                result = OddsSyncEngine().sync_from_feed()
                graded = GradingEngine().grade_picked_games()
            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in odds sync: {e}", exc_info=True)
                return False

            self._update_stats(True, result.processed, graded.graded_count)
            logger.info(
                f"Scheduled sync: {result.processed} games synced, "
                f"{graded.graded_count} picks graded"
            )
            return True

    def _grade_picks(self):
        with self._job_context():
            try:
                graded = GradingEngine().grade_picked_games()
            except Exception as e:
                db.session.rollback()
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in grading pass: {e}", exc_info=True)
                return False

            self.sync_stats["picks_graded"] += graded.graded_count
            return True

    def _update_stats(self, success, games_updated=0, picks_graded=0):
        """Update sync statistics"""
        self.sync_stats["last_sync"] = datetime.now(timezone.utc)
        self.sync_stats["total_syncs"] += 1

        if success:
            self.sync_stats["successful_syncs"] += 1
            self.sync_stats["games_updated"] += games_updated
            self.sync_stats["picks_graded"] += picks_graded
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_syncs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.sync_stats)
        if stats["last_sync"]:
            stats["last_sync"] = stats["last_sync"].isoformat()

        return {
            "is_running": self.is_running,
            "jobs": jobs,
            "stats": stats,
            "unmapped_teams": unmapped_team_counts(),
        }

    def force_sync(self, sync_type="odds"):
        """Manually trigger a job"""
        jobs = {"odds": self._sync_odds, "grade": self._grade_picks}
        if sync_type not in jobs:
            raise ValueError(f"Unknown sync type: {sync_type}")

        logger.info(f"Manual {sync_type} sync requested")
        if jobs[sync_type]():
            return True, f"Manual {sync_type} sync completed"
        return False, f"Manual {sync_type} sync failed: {self.sync_stats['last_error']}"


# Global scheduler instance
scheduler_service = SchedulerService()
