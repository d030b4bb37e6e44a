"""
Academic Term Portal
Scheduler Service — background job registry and interval loop.

Window status is always derived on read, so nothing here is required for
correctness. The only recurring job materializes that status into the
``windows.materialized_status`` cache for consumers that filter on a
stored column.

Architecture:
    - Job functions register through the ``register_job`` decorator
    - Each registered job has a ScheduledJob row (config + run history)
    - ``start()`` launches one daemon thread owned by the process; it runs
      every enabled job each tick and waits on a ``threading.Event`` so
      ``stop()`` cancels it between ticks
    - ``run_job()`` is also the manual trigger used by the API and tests
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from flask import Flask

from portal.models import db
from portal.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("window_status_reconciler")
        def reconcile_window_statuses(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Process-wide scheduler.

    Jobs are executed within the Flask app context. At most one loop thread
    runs per process.
    """

    _app: Flask | None = None
    _thread: threading.Thread | None = None
    _stop_event: threading.Event | None = None
    _interval: int = 300
    _lock = threading.Lock()

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Bind the scheduler to the app and make sure job rows exist."""
        # Import for the registration side effect
        from portal.services import scheduled_jobs  # noqa: F401

        cls._app = app
        cls._interval = int(app.config.get("WINDOW_STATUS_RECONCILE_SECONDS", 300))
        app.extensions["scheduler"] = cls
        cls.ensure_jobs_registered()
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Create missing ScheduledJob rows for registered jobs."""
        if not cls._app:
            return []

        created = []
        with cls._app.app_context():
            for name, fn in _job_registry.items():
                existing = ScheduledJob.query.filter_by(job_name=name).first()
                if not existing:
                    job = ScheduledJob(
                        job_name=name,
                        description=(fn.__doc__ or f"Scheduled job: {name}").strip()[:500],
                        schedule_type="interval",
                        schedule_config={"seconds": cls._interval},
                        status="active",
                        is_enabled=True,
                    )
                    db.session.add(job)
                    created.append(job)
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    # ── Loop lifecycle ───────────────────────────────────────────────────

    @classmethod
    def start(cls) -> bool:
        """Start the loop thread. Returns False if already running or unbound."""
        with cls._lock:
            if cls._app is None:
                logger.warning("SchedulerService.start() called before init_app()")
                return False
            if cls.is_running():
                return False
            cls._stop_event = threading.Event()
            cls._thread = threading.Thread(
                target=cls._loop,
                args=(cls._stop_event,),
                name="portal-scheduler",
                daemon=True,
            )
            cls._thread.start()
        logger.info("Scheduler loop started (interval=%ss)", cls._interval)
        return True

    @classmethod
    def stop(cls, timeout: float = 5.0) -> None:
        """Signal the loop to exit and wait for it."""
        with cls._lock:
            event, thread = cls._stop_event, cls._thread
            cls._thread = None
        if event is not None:
            event.set()
        if thread is not None and thread.is_alive():
            thread.join(timeout)
            logger.info("Scheduler loop stopped")

    @classmethod
    def is_running(cls) -> bool:
        return cls._thread is not None and cls._thread.is_alive()

    @classmethod
    def tick(cls) -> list[dict]:
        """Run every enabled job once."""
        results = []
        for name in list(_job_registry):
            with cls._app.app_context():
                record = ScheduledJob.query.filter_by(job_name=name).first()
                enabled = record is None or record.is_enabled
            if not enabled:
                continue
            results.append(cls.run_job(name))
        return results

    @classmethod
    def _loop(cls, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                cls.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            stop_event.wait(cls._interval)

    # ── Job execution ───────────────────────────────────────────────────

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)

        duration_ms = int((time.monotonic() - start) * 1000)

        try:
            with cls._app.app_context():
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
        except Exception:
            logger.exception("Failed to update job record for %s", job_name)

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    # ── Introspection ───────────────────────────────────────────────────

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def get_job_status(cls, job_name: str) -> dict | None:
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if job_record:
            return job_record.to_dict()
        return None

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a job for the loop; manual triggers still work."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()

    @classmethod
    def status(cls) -> dict:
        return {
            "initialized": cls._app is not None,
            "running": cls.is_running(),
            "interval_seconds": cls._interval,
            "registered_jobs": sorted(_job_registry),
        }
