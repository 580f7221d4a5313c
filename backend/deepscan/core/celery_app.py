"""
Celery application instance and configuration.

The Celery app uses Redis as both broker and result backend, configured from
the application settings.  Deep scans are dispatched by the trigger endpoint
and executed by the task in ``deepscan.tasks.scan_tasks``.
"""

from __future__ import annotations

from celery import Celery
from celery.signals import setup_logging

from deepscan.config import get_settings
from deepscan.core.logging import configure_logging

# ── Constants ────────────────────────────────────────────────────────────────

# The coordinator enforces its own global deadline; these limits only catch a
# wedged worker.
_TASK_SOFT_TIME_LIMIT_SECONDS: int = 900    # 15 minutes
_TASK_HARD_TIME_LIMIT_SECONDS: int = 1080   # 18 minutes
_TASK_DEFAULT_RATE_LIMIT: str = "10/m"
_RESULT_EXPIRES_SECONDS: int = 3600        # 1 hour
_WORKER_PREFETCH_MULTIPLIER: int = 1


def _create_celery_app() -> Celery:
    """Build and configure the Celery application instance.

    Returns:
        A fully configured ``Celery`` application ready to be used by workers
        and by the FastAPI backend to dispatch tasks.
    """
    settings = get_settings()

    app = Celery(
        "deepscan",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["deepscan.tasks.scan_tasks"],
    )

    app.conf.update(
        # ── Serialization ────────────────────────────────────────────────
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",

        # ── Time Zones ───────────────────────────────────────────────────
        timezone="UTC",
        enable_utc=True,

        # ── Task Execution ───────────────────────────────────────────────
        task_soft_time_limit=_TASK_SOFT_TIME_LIMIT_SECONDS,
        task_time_limit=_TASK_HARD_TIME_LIMIT_SECONDS,
        task_default_rate_limit=_TASK_DEFAULT_RATE_LIMIT,
        task_acks_late=True,
        task_reject_on_worker_lost=False,
        task_track_started=True,

        # ── Result Backend ───────────────────────────────────────────────
        result_expires=_RESULT_EXPIRES_SECONDS,

        # ── Worker ───────────────────────────────────────────────────────
        worker_prefetch_multiplier=_WORKER_PREFETCH_MULTIPLIER,
        worker_max_tasks_per_child=200,
        worker_hijack_root_logger=False,

        # ── Broker ───────────────────────────────────────────────────────
        broker_connection_retry_on_startup=True,
    )

    return app


celery: Celery = _create_celery_app()


@setup_logging.connect
def _configure_worker_logging(**kwargs: object) -> None:
    """Use the structured DeepScan handler in workers instead of Celery's own."""
    configure_logging()
