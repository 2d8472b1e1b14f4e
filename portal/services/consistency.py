import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from portal.core.observability import REVIEW_ROUND_DRIFT
from portal.core.time import now_utc
from portal.models.entities import ContentItem, ContentStatusHistory
from portal.services.audit import record_audit
from portal.state_machine.revisions import ReviewRoundCheck, check_review_round
from portal.state_machine.taxonomy import ContentStatus

logger = logging.getLogger(__name__)


def history_statuses(db: Session, content_id: int) -> list[ContentStatus]:
    rows = (
        db.query(ContentStatusHistory.status)
        .filter(ContentStatusHistory.content_id == content_id)
        .order_by(ContentStatusHistory.sequence.asc())
        .all()
    )
    return [row[0] for row in rows]


def review_round_check(db: Session, item: ContentItem) -> ReviewRoundCheck:
    check = check_review_round(item.review_round, history_statuses(db, item.id))
    if not check.consistent:
        REVIEW_ROUND_DRIFT.inc()
        logger.warning(
            "Review round drift on content %s: stored=%s derived=%s",
            item.id,
            check.stored,
            check.derived,
        )
    return check


def repair_review_round(db: Session, item: ContentItem, check: ReviewRoundCheck) -> bool:
    """Overwrite the stored round with the one derived from history.

    Guarded by the item's version like any other write; returns False when a
    transition got there first (the next scan will look again).
    """
    result = db.execute(
        update(ContentItem)
        .where(ContentItem.id == item.id, ContentItem.version == item.version)
        .values(review_round=check.derived, version=item.version + 1, updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    record_audit(
        db,
        "system",
        "repair_review_round",
        "content",
        item.id,
        {"stored": check.stored, "derived": check.derived},
    )
    return True


def scan_review_rounds(db: Session, repair: bool = False) -> dict:
    scanned = 0
    drifted: list[int] = []
    repaired = 0
    for item in db.query(ContentItem).order_by(ContentItem.id.asc()).all():
        scanned += 1
        check = review_round_check(db, item)
        if check.consistent:
            continue
        drifted.append(item.id)
        if repair and repair_review_round(db, item, check):
            repaired += 1
        else:
            # Unrepaired drift, including a repair that lost to a concurrent write.
            record_audit(
                db,
                "system",
                "review_round_drift",
                "content",
                item.id,
                {"stored": check.stored, "derived": check.derived},
            )
    return {"scanned": scanned, "drifted": drifted, "repaired": repaired}
