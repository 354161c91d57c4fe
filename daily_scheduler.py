"""
⏰ DAILY SCHEDULER v2.3
========================
Automated engine jobs:

1. Capture closing lines for games about to start (every 15 minutes)
2. Sync results: outcomes, pick grades, trigger evaluation (every 30 minutes)
3. Daily slate: weakness triggers + edge report (9 AM ET)
4. Weekly recalibration: analyst weights + trigger confidence (Sunday 4 AM ET)

Every run gets its own correlation id (job_context). A data-store
failure is retried once after a short backoff; an engine error is logged
and the job waits for its next run.
"""

# Explicit exports - prevents "cannot import name" errors
__all__ = [
    'DailyScheduler',
    'SchedulerConfig',
    'scheduler_router',
    'init_scheduler',
    'get_scheduler',
]

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import APIRouter, Depends, HTTPException

from core.auth import verify_api_key
from core.errors import DataStoreError, EngineError
from core.structured_logging import job_context, log_with_context
from core.time_et import now_et, today_et
from daily_report import write_report
from edge_engine import analyze_date
from env_config import Config
from grading_engine import capture_due_lines, sync_results
from learning_engine import latest_trigger_confidence, run_trigger_recalibration, run_weight_recalibration
from weakness_triggers import detect_for_date, evaluate_finished

logger = logging.getLogger(__name__)


# ============================================
# CONFIGURATION
# ============================================

class SchedulerConfig:
    """Scheduler configuration."""

    LINE_CAPTURE_MINUTES = 15
    SYNC_MINUTES = 30

    # Daily slate (9 AM ET)
    SLATE_HOUR = 9
    SLATE_MINUTE = 0

    # Weekly recalibration (Sunday 4 AM ET)
    RECALIBRATION_DAY = "sun"
    RECALIBRATION_HOUR = 4

    # One retry on data-store failures
    DATA_STORE_RETRIES = 1
    RETRY_BACKOFF_SECONDS = 5.0


# ============================================
# JOBS
# ============================================

def capture_lines_job() -> Dict[str, Any]:
    return capture_due_lines()


def sync_results_job() -> Dict[str, Any]:
    summary = sync_results()
    summary["triggers"] = evaluate_finished()
    return summary


def daily_slate_job() -> Dict[str, Any]:
    day = today_et()
    triggers = detect_for_date(day, confidence_overrides=latest_trigger_confidence())
    path = write_report(day, analyze_date(day))
    return {"date": day.isoformat(), "triggers": triggers, "report": str(path)}


def recalibration_job() -> Dict[str, Any]:
    return {
        "weights": run_weight_recalibration(),
        "triggers": run_trigger_recalibration(),
    }


JOBS: Dict[str, Callable[[], Dict[str, Any]]] = {
    "capture_lines": capture_lines_job,
    "sync_results": sync_results_job,
    "daily_slate": daily_slate_job,
    "recalibration": recalibration_job,
}


# ============================================
# SCHEDULER
# ============================================

class DailyScheduler:
    """
    Manages scheduled tasks.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self.scheduler = None
        self.running = False
        self.last_runs: Dict[str, Dict[str, Any]] = {}
        self._sleep = sleep

    def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        tz = Config.TIMEZONE
        self.scheduler = BackgroundScheduler(timezone=tz)

        self.scheduler.add_job(
            lambda: self.run_job("capture_lines"),
            IntervalTrigger(minutes=SchedulerConfig.LINE_CAPTURE_MINUTES),
            id="capture_lines",
            name="Line Capture",
        )
        self.scheduler.add_job(
            lambda: self.run_job("sync_results"),
            IntervalTrigger(minutes=SchedulerConfig.SYNC_MINUTES),
            id="sync_results",
            name="Result Sync",
        )
        self.scheduler.add_job(
            lambda: self.run_job("daily_slate"),
            CronTrigger(hour=SchedulerConfig.SLATE_HOUR, minute=SchedulerConfig.SLATE_MINUTE, timezone=tz),
            id="daily_slate",
            name="Daily Slate",
        )
        self.scheduler.add_job(
            lambda: self.run_job("recalibration"),
            CronTrigger(
                day_of_week=SchedulerConfig.RECALIBRATION_DAY,
                hour=SchedulerConfig.RECALIBRATION_HOUR,
                minute=0,
                timezone=tz,
            ),
            id="recalibration",
            name="Weekly Recalibration",
        )

        self.scheduler.start()
        self.running = True
        logger.info("⏰ Daily scheduler started (%s jobs, tz=%s)", len(JOBS), tz)

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Daily scheduler stopped")

    def run_job(self, name: str) -> Dict[str, Any]:
        """Run one job now, inside its own correlation context."""
        if name not in JOBS:
            raise EngineError(f"Unknown job {name!r}, expected one of {sorted(JOBS)}")

        job = JOBS[name]
        with job_context(name) as job_id:
            started = now_et()
            attempt = 0
            while True:
                try:
                    result = job()
                    status = "success"
                    break
                except DataStoreError as e:
                    if e.retryable and attempt < SchedulerConfig.DATA_STORE_RETRIES:
                        attempt += 1
                        backoff = SchedulerConfig.RETRY_BACKOFF_SECONDS * attempt
                        log_with_context(
                            logger, logging.WARNING, "Job data store failure, retrying",
                            job=name, attempt=attempt, backoff_s=backoff, error=str(e),
                        )
                        self._sleep(backoff)
                        continue
                    logger.error("Job %s failed: data store unavailable: %s", name, e)
                    result = {"error": str(e)}
                    status = "failed"
                    break
                except EngineError as e:
                    logger.error("Job %s failed: %s", name, e)
                    result = {"error": str(e)}
                    status = "failed"
                    break
                except Exception as e:
                    logger.exception("Job %s failed unexpectedly: %s", name, e)
                    result = {"error": str(e)}
                    status = "failed"
                    break

            self.last_runs[name] = {
                "job_id": job_id,
                "status": status,
                "started": started.isoformat(),
                "finished": now_et().isoformat(),
                "attempts": attempt + 1,
            }
            log_with_context(logger, logging.INFO, "Job finished", job=name, status=status, attempts=attempt + 1)
            return {"job": name, "status": status, "result": result}

    def get_status(self) -> Dict[str, Any]:
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run: Optional[datetime] = job.next_run_time
                jobs.append({
                    "id": job.id,
                    "name": job.name,
                    "next_run": next_run.isoformat() if next_run else None,
                })
        return {"running": self.running, "jobs": jobs, "last_runs": self.last_runs}


# ============================================
# FASTAPI ROUTER
# ============================================

scheduler_router = APIRouter(prefix="/scheduler", tags=["scheduler"])

# Global scheduler instance (initialized in main app)
_scheduler: Optional[DailyScheduler] = None


def init_scheduler() -> DailyScheduler:
    """Initialize the global scheduler."""
    global _scheduler
    _scheduler = DailyScheduler()
    return _scheduler


def get_scheduler() -> Optional[DailyScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


@scheduler_router.get("/status")
async def scheduler_status():
    """Get scheduler status."""
    if not _scheduler:
        return {"status": "not_initialized"}
    return {"status": "success", "scheduler": _scheduler.get_status()}


@scheduler_router.post("/run/{job_name}")
async def run_job_now(job_name: str, auth: bool = Depends(verify_api_key)):
    """Manually trigger a job."""
    if not _scheduler:
        raise HTTPException(500, "Scheduler not initialized")
    return _scheduler.run_job(job_name)
