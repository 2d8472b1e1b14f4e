from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from portal.core.config import get_settings
from portal.core.observability import TASK_COUNT
from portal.db.session import get_session_maker
from portal.models.entities import JobDeadLetter
from portal.schemas.common import TransitionCompleted
from portal.services.activity import record_content_activity
from portal.services.consistency import scan_review_rounds
from portal.services.idempotency import cleanup_expired_keys
from portal.tasks.celery_app import celery_app

logger = get_task_logger(__name__)


def _db() -> Session:
    return get_session_maker()()


@celery_app.task(name="portal.tasks.jobs.on_transition_completed")
def on_transition_completed(payload: dict) -> dict:
    db = _db()
    try:
        event = TransitionCompleted.model_validate(payload)
        entry = record_content_activity(db, event)
        db.commit()
        TASK_COUNT.labels("on_transition_completed", "success").inc()
        return {"activity_id": entry.id}
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        _dead_letter(db, "on_transition_completed", payload, exc)
        TASK_COUNT.labels("on_transition_completed", "failure").inc()
        raise
    finally:
        db.close()


@celery_app.task(name="portal.tasks.jobs.audit_review_rounds")
def audit_review_rounds(repair: bool | None = None) -> dict:
    settings = get_settings()
    db = _db()
    try:
        summary = scan_review_rounds(db, repair=settings.review_round_audit_repair if repair is None else repair)
        db.commit()
        if summary["drifted"]:
            logger.warning(
                "Review round drift on %s of %s items: %s",
                len(summary["drifted"]),
                summary["scanned"],
                summary["drifted"],
            )
        TASK_COUNT.labels("audit_review_rounds", "success").inc()
        return summary
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        _dead_letter(db, "audit_review_rounds", {"repair": repair}, exc)
        TASK_COUNT.labels("audit_review_rounds", "failure").inc()
        raise
    finally:
        db.close()


@celery_app.task(name="portal.tasks.jobs.cleanup_idempotency")
def cleanup_idempotency() -> dict:
    db = _db()
    try:
        removed = cleanup_expired_keys(db)
        db.commit()
        TASK_COUNT.labels("cleanup_idempotency", "success").inc()
        return {"deleted": removed}
    except Exception:  # noqa: BLE001
        db.rollback()
        TASK_COUNT.labels("cleanup_idempotency", "failure").inc()
        raise
    finally:
        db.close()


def _dead_letter(db: Session, task_name: str, payload: dict, exc: Exception, retry_count: int = 0) -> None:
    logger.exception("Task failed %s", task_name)
    db.add(
        JobDeadLetter(
            task_name=task_name,
            payload_json=payload,
            retry_count=retry_count,
            error=str(exc),
        )
    )
    db.commit()
