import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from portal.models.entities import ApprovalMode, Client, ContentItem
from portal.state_machine.taxonomy import ContentStatus

logger = logging.getLogger(__name__)

# Statuses that count as "the client has signed off on this one".
_SIGNED_OFF = (ContentStatus.approved, ContentStatus.published)


def count_signed_off_content(db: Session, client_id: int) -> int:
    return (
        db.query(func.count(ContentItem.id))
        .filter(ContentItem.client_id == client_id, ContentItem.status.in_(_SIGNED_OFF))
        .scalar()
        or 0
    )


def determine_approval_required(db: Session, client: Client) -> bool:
    """Decide whether a new item for ``client`` needs explicit client approval.

    ``initial_approval`` clients review their first ``approval_threshold``
    pieces; after that new content skips the approval step. Anything
    unexpected falls back to requiring approval.
    """
    mode = client.content_approval_mode
    if mode == ApprovalMode.full_approval:
        return True
    if mode == ApprovalMode.auto:
        return False
    if mode == ApprovalMode.initial_approval:
        threshold = client.approval_threshold
        if not threshold or threshold <= 0:
            return True
        return count_signed_off_content(db, client.id) < threshold

    logger.warning("Unknown approval mode %r for client %s; requiring approval", mode, client.id)
    return True
