"""
AnalfaBet Automatic Sync Scheduler Service

Runs the football-data.org sync in the background using APScheduler:
live results while matches are in play, a periodic results sweep, and a
daily full fixture sync.
"""

import atexit
import logging
import threading
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from flask import current_app

from analfabet import db
from analfabet.models import Match
from analfabet.utils.data_sync import DataSync

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages automatic background scheduling for match syncing"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.data_sync = None
        self.is_running = False
        # Jobs share one DataSync and its per-minute request budget
        self._sync_lock = threading.Lock()
        self.sync_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats(last_sync=None):
        return {
            "last_sync": last_sync,
            "total_syncs": 0,
            "successful_syncs": 0,
            "failed_syncs": 0,
            "skipped_syncs": 0,
            "last_error": None,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        with app.app_context():
            self.data_sync = DataSync()

        # Register shutdown
        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def _get_app(self):
        return self.app or current_app._get_current_object()

    def _get_data_sync(self):
        if self.data_sync is None:
            self.data_sync = DataSync()
        return self.data_sync

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""
        live_seconds = self.app.config.get("LIVE_SYNC_SECONDS", 120)

        # Results while a match is in its live window
        self.scheduler.add_job(
            func=self._sync_live_matches,
            trigger=IntervalTrigger(seconds=live_seconds),
            id="sync_live_matches",
            name="Sync Live Match Results",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        # Sweep for any kicked-off match still without a final result
        self.scheduler.add_job(
            func=self._sync_results,
            trigger=IntervalTrigger(minutes=15),
            id="sync_results",
            name="Sync Pending Results",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=120,
        )

        # Daily fixture sync (3 AM UTC): new dates, postponements, new rounds
        self.scheduler.add_job(
            func=self._daily_sync,
            trigger=CronTrigger(hour=3, minute=0),
            id="daily_sync",
            name="Daily Fixture Sync",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def _run_job(self, name, job):
        """Run a sync callable inside an app context and record the outcome"""
        with self._sync_lock, self._get_app().app_context():
            try:
                success, message = job()

                if success:
                    db.session.expire_all()
                    self._update_stats(True)
                    logger.info(f"{name} completed: {message}")
                else:
                    self._update_stats(False, message)
                    logger.warning(f"{name} issues: {message}")

                return success, message

            except Exception as e:
                db.session.rollback()
                self._update_stats(False, str(e))
                logger.error(f"Error in {name}: {e}", exc_info=True)
                return False, str(e)

    def _results_batch_size(self):
        return self._get_app().config.get("RESULTS_BATCH_SIZE", 5)

    def _sync_live_matches(self):
        """High-frequency results sync, only while a match may be in play"""
        with self._get_app().app_context():
            if not Match.get_live_window_matches():
                # Silent - no need to log when nothing is live
                self.sync_stats["skipped_syncs"] += 1
                return True, "No matches in play"

        return self._run_job(
            "Live match sync",
            lambda: self._get_data_sync().update_results(
                limit=self._results_batch_size()
            ),
        )

    def _sync_results(self):
        return self._run_job(
            "Results sync",
            lambda: self._get_data_sync().update_results(
                limit=self._results_batch_size()
            ),
        )

    def _daily_sync(self):
        return self._run_job(
            "Daily fixture sync", lambda: self._get_data_sync().sync_matches()
        )

    def _update_stats(self, success, error=None):
        """Update sync statistics"""
        self.sync_stats["last_sync"] = datetime.now(timezone.utc)
        self.sync_stats["total_syncs"] += 1

        if success:
            self.sync_stats["successful_syncs"] += 1
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_syncs"] += 1
            self.sync_stats["last_error"] = error

        # Reset counters periodically
        if self.sync_stats["total_syncs"] > 10000:
            self.sync_stats = self._empty_stats(self.sync_stats["last_sync"])

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
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

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def force_sync(self, sync_type="results"):
        """
        Manually trigger a sync

        Args:
            sync_type: "live", "results" or "full"

        Returns:
            tuple: (success, message)
        """
        jobs = {
            "live": self._sync_live_matches,
            "results": self._sync_results,
            "full": self._daily_sync,
        }
        job = jobs.get(sync_type)
        if job is None:
            return False, f"Unknown sync type: {sync_type}"

        success, message = job()
        if success:
            return True, f"Manual {sync_type} sync completed: {message}"
        return False, f"Manual {sync_type} sync failed: {message}"

    def pause_job(self, job_id):
        """Pause a specific job"""
        if not self.scheduler:
            return False, "Scheduler is not initialized"
        try:
            self.scheduler.pause_job(job_id)
            return True, f"Job {job_id} paused"
        except Exception as e:
            return False, f"Failed to pause job: {e}"

    def resume_job(self, job_id):
        """Resume a specific job"""
        if not self.scheduler:
            return False, "Scheduler is not initialized"
        try:
            self.scheduler.resume_job(job_id)
            return True, f"Job {job_id} resumed"
        except Exception as e:
            return False, f"Failed to resume job: {e}"


# Global scheduler instance
scheduler_service = SchedulerService()
