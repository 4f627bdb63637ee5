"""Celery application for outreach worker."""

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from remarketing_service.config import get_settings
from remarketing_service.log_config import configure_logging

settings = get_settings()

# Create Celery app
app = Celery(
    "outreach_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "outreach_worker.tasks.follow_ups",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A pass is killed before its Redis lock can expire
    task_time_limit=settings.follow_up_lock_ttl_seconds,
    task_soft_time_limit=max(settings.follow_up_lock_ttl_seconds - 60, 1),
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="outreach",
    task_routes={
        "outreach_worker.tasks.*": {"queue": "outreach"},
    },
)

# Beat schedule for periodic tasks
app.conf.beat_schedule = {
    # Contact carts due for follow-up every 15 minutes by default
    "run-follow-up-pass": {
        "task": "outreach_worker.tasks.follow_ups.run_follow_up_pass",
        "schedule": crontab(minute=f"*/{settings.follow_up_interval_minutes}"),
    },
}


@worker_process_init.connect
def setup_logging(**kwargs) -> None:
    configure_logging(get_settings())


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "outreach"])


if __name__ == "__main__":
    run()
