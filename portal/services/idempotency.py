import hashlib
import json
import logging
from datetime import timedelta

from fastapi import HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.config import get_settings
from portal.core.time import now_utc
from portal.models.entities import IdempotencyKey


logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


def stable_request_hash(payload: dict) -> str:
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def resolve_cached_response(
    db: Session, request: Request, endpoint: str, payload: dict
) -> dict | None:
    key = request.headers.get(IDEMPOTENCY_HEADER)
    if not key:
        return None

    request_hash = stable_request_hash(payload)
    existing = (
        db.query(IdempotencyKey)
        .filter(IdempotencyKey.key == key, IdempotencyKey.endpoint == endpoint)
        .one_or_none()
    )
    if existing:
        if existing.request_hash != request_hash:
            raise HTTPException(status_code=409, detail="Idempotency key reused with different payload")
        return existing.response_json
    return None


def store_response(
    db: Session, key: str | None, endpoint: str, payload: dict, response_json: dict
) -> None:
    if not key:
        return
    db.add(
        IdempotencyKey(
            key=key,
            endpoint=endpoint,
            request_hash=stable_request_hash(payload),
            response_json=response_json,
        )
    )


def cleanup_expired_keys(db: Session) -> int:
    settings = get_settings()
    cutoff = now_utc() - timedelta(hours=settings.idempotency_ttl_hours)
    deleted = (
        db.query(IdempotencyKey).filter(IdempotencyKey.created_at < cutoff).delete(synchronize_session=False)
    )
    return deleted


def commit_stored_response(db: Session, key: str | None, endpoint: str) -> None:
    """Commit a stored response whose side effects are already committed.

    A concurrent request with the same key may have stored its row first;
    the duplicate is dropped and the caller's response stands.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Idempotency key %r for %s was stored concurrently", key, endpoint)
