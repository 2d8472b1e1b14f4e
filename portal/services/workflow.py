"""Content workflow service.

The only code that writes status-bearing fields of a content item. A
transition is: load a snapshot, validate it against the transition table,
then write the new status and its history row in one database transaction,
conditioned on the item still being at the snapshot's version.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from portal.core.config import get_settings
from portal.core.errors import Conflict, NotFound, PermissionDenied, StoreUnavailable
from portal.core.observability import TRANSITION_COUNT, TRANSITION_REJECTED
from portal.core.time import now_utc
from portal.models.entities import Client, ContentItem, ContentStatusHistory
from portal.schemas.common import (
    Actor,
    ContentCreate,
    ContentOut,
    FeedbackOut,
    StatusHistoryEntryOut,
    TransitionCompleted,
)
from portal.services.approval import determine_approval_required
from portal.services.audit import actor_label, record_audit
from portal.services.consistency import review_round_check
from portal.state_machine.revisions import ReviewRoundCheck, next_review_round
from portal.state_machine.taxonomy import INITIAL_STATUS, ActorRole, ContentStatus
from portal.state_machine.validator import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentSnapshot:
    id: int
    client_id: int
    client_name: str
    title: str
    status: ContentStatus
    approval_required: bool
    review_round: int
    version: int

    @classmethod
    def of(cls, item: ContentItem) -> "ContentSnapshot":
        return cls(
            id=item.id,
            client_id=item.client_id,
            client_name=item.client.name if item.client else "Unknown Client",
            title=item.title,
            status=item.status,
            approval_required=item.approval_required,
            review_round=item.review_round,
            version=item.version,
        )


def publish_transition_completed(event: TransitionCompleted) -> None:
    from portal.tasks.jobs import on_transition_completed

    on_transition_completed.delay(event.model_dump(mode="json"))


class WorkflowService:
    def __init__(
        self,
        db: Session,
        publish: Callable[[TransitionCompleted], None] = publish_transition_completed,
    ) -> None:
        self.db = db
        self._publish = publish

    # -- reads ---------------------------------------------------------------

    def _read(self, fn):
        settings = get_settings()
        retrying = Retrying(
            stop=stop_after_attempt(settings.store_retry_attempts),
            wait=wait_exponential(multiplier=0.1, max=settings.store_retry_max_wait_seconds),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    try:
                        return fn()
                    except OperationalError:
                        self.db.rollback()
                        raise
        except OperationalError as exc:
            logger.exception("Content store read failed after %s attempts", settings.store_retry_attempts)
            raise StoreUnavailable() from exc

    def _get_item(self, content_id: int) -> ContentItem:
        item = self._read(lambda: self.db.get(ContentItem, content_id))
        if item is None:
            raise NotFound(f"Content {content_id} not found", details={"content_id": content_id})
        return item

    def _check_owner(self, item: ContentItem, actor: Actor) -> None:
        # Foreign content is reported as missing rather than forbidden.
        if actor.role == ActorRole.client and item.client_id != actor.client_id:
            raise NotFound(f"Content {item.id} not found", details={"content_id": item.id})

    def get_visible_item(self, content_id: int, actor: Actor) -> ContentItem:
        item = self._get_item(content_id)
        self._check_owner(item, actor)
        if actor.role == ActorRole.client and item.status == ContentStatus.draft:
            raise NotFound(f"Content {content_id} not found", details={"content_id": content_id})
        return item

    def load_snapshot(self, content_id: int, actor: Actor) -> ContentSnapshot:
        return ContentSnapshot.of(self.get_visible_item(content_id, actor))

    def history(self, content_id: int) -> list[ContentStatusHistory]:
        return self._read(
            lambda: self.db.query(ContentStatusHistory)
            .filter(ContentStatusHistory.content_id == content_id)
            .order_by(ContentStatusHistory.sequence.asc())
            .all()
        )

    def get_history(self, content_id: int, actor: Actor) -> list[ContentStatusHistory]:
        self.get_visible_item(content_id, actor)
        return self.history(content_id)

    def get_content_state(self, content_id: int, actor: Actor) -> ContentOut:
        item = self.get_visible_item(content_id, actor)
        return self.content_out(item)

    def content_out(self, item: ContentItem) -> ContentOut:
        entries = [StatusHistoryEntryOut.model_validate(row) for row in self.history(item.id)]
        return ContentOut(
            id=item.id,
            client_id=item.client_id,
            title=item.title,
            body=item.body,
            content_type=item.content_type,
            assigned_to=item.assigned_to,
            status=item.status,
            approval_required=item.approval_required,
            review_round=item.review_round,
            version=item.version,
            status_changed_at=item.status_changed_at,
            created_at=item.created_at,
            status_history=entries,
        )

    def list_content(
        self,
        actor: Actor,
        status: ContentStatus | None = None,
        client_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ContentItem], int]:
        query = self.db.query(ContentItem)
        if actor.role == ActorRole.client:
            query = query.filter(
                ContentItem.client_id == actor.client_id, ContentItem.status != ContentStatus.draft
            )
        elif client_id is not None:
            query = query.filter(ContentItem.client_id == client_id)
        if status is not None:
            query = query.filter(ContentItem.status == status)

        def run():
            total = query.count()
            items = (
                query.order_by(ContentItem.status_changed_at.desc(), ContentItem.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return items, total

        return self._read(run)

    def list_feedback(self, content_id: int, actor: Actor) -> list[FeedbackOut]:
        return [
            FeedbackOut(
                review_round=entry.review_round,
                note=entry.note,
                changed_at=entry.changed_at,
                changed_by_name=entry.changed_by_name,
            )
            for entry in self.get_history(content_id, actor)
            if entry.status == ContentStatus.revisions_requested and entry.note
        ]

    def check_review_round(self, content_id: int) -> ReviewRoundCheck:
        item = self._get_item(content_id)
        return self._read(lambda: review_round_check(self.db, item))

    # -- writes --------------------------------------------------------------

    def create_content(self, payload: ContentCreate, actor: Actor) -> ContentItem:
        if not actor.is_producer:
            raise PermissionDenied("Only producers can create content")
        client = self._read(lambda: self.db.get(Client, payload.client_id))
        if client is None:
            raise NotFound(f"Client {payload.client_id} not found", details={"client_id": payload.client_id})

        approval_required = payload.approval_required
        if approval_required is None:
            approval_required = self._read(lambda: determine_approval_required(self.db, client))

        now = now_utc()
        item = ContentItem(
            client_id=client.id,
            title=payload.title,
            body=payload.body,
            content_type=payload.content_type,
            assigned_to=payload.assigned_to,
            status=INITIAL_STATUS,
            approval_required=approval_required,
            review_round=0,
            version=0,
            status_changed_at=now,
            created_by_id=actor.id,
        )
        try:
            self.db.add(item)
            self.db.flush()
            record_audit(
                self.db,
                actor_label(actor),
                "create",
                "content",
                item.id,
                payload.model_dump(mode="json") | {"approval_required": approval_required},
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to create content for client %s", client.id)
            raise StoreUnavailable() from exc

        logger.info("Created content %s for client %s (approval_required=%s)", item.id, client.id, approval_required)
        self._emit(
            TransitionCompleted(
                content_id=item.id,
                content_title=item.title,
                client_id=client.id,
                client_name=client.name,
                from_status=None,
                to_status=INITIAL_STATUS,
                changed_by_id=actor.id,
                changed_by_name=actor.name,
            )
        )
        return item

    def transition(
        self,
        content_id: int,
        target: ContentStatus,
        actor: Actor,
        note: str | None = None,
        expected_version: int | None = None,
    ) -> ContentItem:
        snapshot = self.load_snapshot(content_id, actor)
        if expected_version is not None and expected_version != snapshot.version:
            raise self._conflict(snapshot.id, reason="Content changed since it was last loaded")
        return self.apply_transition(snapshot, target, actor, note)

    def apply_transition(
        self,
        snapshot: ContentSnapshot,
        target: ContentStatus,
        actor: Actor,
        note: str | None = None,
    ) -> ContentItem:
        check = validate(snapshot, target, actor.role, note)
        if not check.ok:
            TRANSITION_REJECTED.labels(check.error.code).inc()
            logger.info(
                "Rejected transition on content %s: %s -> %s by %s (%s)",
                snapshot.id,
                snapshot.status.value,
                target.value,
                actor.role.value,
                check.error.code,
            )
            raise check.error

        clean_note = (note or "").strip() or None
        new_round = next_review_round(snapshot.review_round, target)
        new_version = snapshot.version + 1
        changed_at = now_utc()

        try:
            result = self.db.execute(
                update(ContentItem)
                .where(
                    ContentItem.id == snapshot.id,
                    ContentItem.version == snapshot.version,
                    ContentItem.status == snapshot.status,
                )
                .values(
                    status=target,
                    review_round=new_round,
                    version=new_version,
                    status_changed_at=changed_at,
                    updated_at=changed_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise self._conflict(snapshot.id)

            self.db.add(
                ContentStatusHistory(
                    content_id=snapshot.id,
                    sequence=new_version,
                    from_status=snapshot.status,
                    status=target,
                    review_round=new_round,
                    changed_at=changed_at,
                    changed_by_id=actor.id,
                    changed_by_name=actor.name,
                    note=clean_note,
                )
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._conflict(snapshot.id) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Transition write failed for content %s", snapshot.id)
            raise StoreUnavailable() from exc

        TRANSITION_COUNT.labels(snapshot.status.value, target.value, actor.role.value).inc()
        logger.info(
            "Content %s moved %s -> %s by %s %s (round %s)",
            snapshot.id,
            snapshot.status.value,
            target.value,
            actor.role.value,
            actor.id or "system",
            new_round,
        )

        item = self._get_item(snapshot.id)
        self._read(lambda: review_round_check(self.db, item))
        self._emit(
            TransitionCompleted(
                content_id=snapshot.id,
                content_title=snapshot.title,
                client_id=snapshot.client_id,
                client_name=snapshot.client_name,
                from_status=snapshot.status,
                to_status=target,
                changed_by_id=actor.id,
                changed_by_name=actor.name,
                note=clean_note,
                review_round=new_round,
            )
        )
        return item

    def _conflict(self, content_id: int, reason: str = "Content was changed by someone else") -> Conflict:
        current = self._get_item(content_id)
        logger.warning(
            "Lost transition race on content %s; now %s at version %s",
            content_id,
            current.status.value,
            current.version,
        )
        return Conflict(
            reason,
            details={
                "content_id": content_id,
                "current_status": current.status.value,
                "current_version": current.version,
            },
        )

    def _emit(self, event: TransitionCompleted) -> None:
        # The transition is committed; subscribers failing must not undo it.
        try:
            self._publish(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to dispatch transition event for content %s", event.content_id)
