from sqlalchemy.orm import Session

from portal.models.entities import AuditLog
from portal.schemas.common import Actor


def actor_label(actor: Actor) -> str:
    return f"{actor.role.value}:{actor.id or 'system'}"


def record_audit(db: Session, actor: str, action: str, entity_type: str, entity_id: int, payload: dict) -> None:
    db.add(
        AuditLog(
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload_json=payload,
        )
    )
