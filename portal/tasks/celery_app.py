from celery import Celery
from celery.schedules import crontab

from portal.core.config import get_settings

settings = get_settings()
celery_app = Celery(
    "portal",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["portal.tasks.jobs"],
)
celery_app.conf.task_always_eager = settings.celery_eager_mode
celery_app.conf.task_eager_propagates = True

celery_app.conf.task_routes = {
    "portal.tasks.jobs.on_transition_completed": {"queue": "events"},
    "portal.tasks.jobs.audit_review_rounds": {"queue": "default"},
    "portal.tasks.jobs.cleanup_idempotency": {"queue": "default"},
}
celery_app.conf.beat_schedule = {
    "audit-review-rounds-daily": {
        "task": "portal.tasks.jobs.audit_review_rounds",
        "schedule": crontab(minute=30, hour=3),
    },
    "cleanup-idempotency-daily": {
        "task": "portal.tasks.jobs.cleanup_idempotency",
        "schedule": crontab(minute=0, hour=2),
    },
}
