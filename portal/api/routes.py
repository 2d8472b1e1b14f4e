from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from portal.core.auth import get_actor
from portal.core.config import get_settings
from portal.core.errors import NotFound, PermissionDenied
from portal.core.responses import success_response
from portal.db.session import get_db
from portal.models.entities import ActivityFeedEntry, ApprovalMode, Client
from portal.schemas import (
    ActionButtonOut,
    ActionsOut,
    ActivityOut,
    Actor,
    ApprovalSettingsUpdate,
    ClientCreate,
    ClientOut,
    ContentCreate,
    ContentListItemOut,
    ReviewRoundCheckOut,
    StatusHistoryEntryOut,
    TransitionRequest,
)
from portal.services.activity import record_client_setting_change
from portal.services.audit import actor_label, record_audit
from portal.services.idempotency import (
    IDEMPOTENCY_HEADER,
    commit_stored_response,
    resolve_cached_response,
    store_response,
)
from portal.services.workflow import WorkflowService
from portal.state_machine.actions import next_actions, status_color, status_label, waiting_hint
from portal.state_machine.progress import progress_payload
from portal.state_machine.taxonomy import ActorRole, parse_status

router = APIRouter(prefix="/v1", tags=["v1"])


def _require_producer(actor: Actor) -> None:
    if not actor.is_producer:
        raise PermissionDenied("This action is restricted to producers")


def _get_client(db: Session, client_id: int, actor: Actor) -> Client:
    client = db.query(Client).filter(Client.id == client_id).one_or_none()
    if not client or (actor.role == ActorRole.client and actor.client_id != client.id):
        raise NotFound(f"Client {client_id} not found", details={"client_id": client_id})
    return client


@router.post("/clients")
def create_client(
    payload: ClientCreate,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    _require_producer(actor)
    cached = resolve_cached_response(db, request, "/v1/clients", payload.model_dump(mode="json"))
    if cached:
        return success_response(cached)

    if db.query(Client).filter(Client.name == payload.name).one_or_none():
        raise HTTPException(status_code=409, detail="Client name already exists")

    data = payload.model_dump()
    if data["content_approval_mode"] is None:
        data["content_approval_mode"] = ApprovalMode(get_settings().default_approval_mode)
    client = Client(**data)
    db.add(client)
    db.flush()
    record_audit(db, actor_label(actor), "create", "client", client.id, payload.model_dump(mode="json"))
    response = ClientOut.model_validate(client).model_dump(mode="json")
    store_response(
        db, request.headers.get(IDEMPOTENCY_HEADER), "/v1/clients", payload.model_dump(mode="json"), response
    )
    db.commit()
    return success_response(response)


@router.get("/clients/{client_id}")
def get_client(client_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    client = _get_client(db, client_id, actor)
    return success_response(ClientOut.model_validate(client).model_dump(mode="json"))


@router.patch("/clients/{client_id}/approval-settings")
def update_approval_settings(
    client_id: int,
    payload: ApprovalSettingsUpdate,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    _require_producer(actor)
    endpoint = f"/v1/clients/{client_id}/approval-settings"
    request_payload = payload.model_dump(mode="json", exclude_unset=True)
    cached = resolve_cached_response(db, request, endpoint, request_payload)
    if cached:
        return success_response(cached)

    client = _get_client(db, client_id, actor)

    # Only the fields the caller sent; omitted ones keep their stored value.
    changes = {}
    for key, value in payload.model_dump(exclude_unset=True).items():
        old_value = getattr(client, key)
        if old_value != value:
            changes[key] = (old_value, value)
            setattr(client, key, value)

    for key, (old_value, new_value) in changes.items():
        record_client_setting_change(
            db,
            client_id=client.id,
            client_name=client.name,
            user_id=actor.id,
            user_name=actor.name,
            setting_name=key,
            old_value=getattr(old_value, "value", old_value),
            new_value=getattr(new_value, "value", new_value),
        )
    record_audit(db, actor_label(actor), "update", "client", client.id, request_payload)
    response = ClientOut.model_validate(client).model_dump(mode="json")
    store_response(db, request.headers.get(IDEMPOTENCY_HEADER), endpoint, request_payload, response)
    db.commit()
    return success_response(response)


@router.post("/content")
def create_content(
    payload: ContentCreate,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    cached = resolve_cached_response(db, request, "/v1/content", payload.model_dump(mode="json"))
    if cached:
        return success_response(cached)

    service = WorkflowService(db)
    item = service.create_content(payload, actor)
    response = service.content_out(item).model_dump(mode="json")
    key = request.headers.get(IDEMPOTENCY_HEADER)
    store_response(db, key, "/v1/content", payload.model_dump(mode="json"), response)
    commit_stored_response(db, key, "/v1/content")
    return success_response(response)


@router.get("/content")
def list_content(
    status: str | None = Query(default=None),
    client_id: int | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    try:
        status_filter = parse_status(status) if status else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    items, total = WorkflowService(db).list_content(
        actor, status=status_filter, client_id=client_id, limit=limit, offset=offset
    )
    data = [
        ContentListItemOut(
            id=item.id,
            client_id=item.client_id,
            title=item.title,
            content_type=item.content_type,
            status=item.status,
            status_label=status_label(item.status, actor.role),
            approval_required=item.approval_required,
            review_round=item.review_round,
            status_changed_at=item.status_changed_at,
        ).model_dump(mode="json")
        for item in items
    ]
    return success_response(data, meta={"total": total, "limit": limit, "offset": offset})


@router.get("/content/{content_id}")
def get_content(content_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    state = WorkflowService(db).get_content_state(content_id, actor)
    return success_response(state.model_dump(mode="json"))


@router.get("/content/{content_id}/history")
def get_content_history(content_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    entries = WorkflowService(db).get_history(content_id, actor)
    return success_response([StatusHistoryEntryOut.model_validate(e).model_dump(mode="json") for e in entries])


@router.get("/content/{content_id}/feedback")
def get_content_feedback(content_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    feedback = WorkflowService(db).list_feedback(content_id, actor)
    return success_response([entry.model_dump(mode="json") for entry in feedback])


@router.get("/content/{content_id}/actions")
def get_content_actions(content_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    item = WorkflowService(db).get_visible_item(content_id, actor)
    payload = ActionsOut(
        content_id=item.id,
        status=item.status,
        status_label=status_label(item.status, actor.role),
        status_color=status_color(item.status),
        actions=[
            ActionButtonOut(**button.as_dict())
            for button in next_actions(item.status, actor.role, item.approval_required)
        ],
        waiting_hint=waiting_hint(item.status, actor.role, item.approval_required),
        progress=progress_payload(item.status, item.approval_required),
    )
    return success_response(payload.model_dump(mode="json"))


@router.post("/content/{content_id}/transition")
def transition_content(
    content_id: int,
    payload: TransitionRequest,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    endpoint = f"/v1/content/{content_id}/transition"
    request_payload = payload.model_dump(mode="json") | {"actor_id": actor.id}
    cached = resolve_cached_response(db, request, endpoint, request_payload)
    if cached:
        return success_response(cached)

    service = WorkflowService(db)
    item = service.transition(
        content_id,
        payload.target_status,
        actor,
        note=payload.note,
        expected_version=payload.expected_version,
    )
    response = service.content_out(item).model_dump(mode="json")
    key = request.headers.get(IDEMPOTENCY_HEADER)
    store_response(db, key, endpoint, request_payload, response)
    commit_stored_response(db, key, endpoint)
    return success_response(response)


@router.get("/content/{content_id}/consistency")
def get_content_consistency(content_id: int, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    _require_producer(actor)
    check = WorkflowService(db).check_review_round(content_id)
    payload = ReviewRoundCheckOut(
        content_id=content_id, stored=check.stored, derived=check.derived, consistent=check.consistent
    )
    return success_response(payload.model_dump())


@router.get("/activity")
def list_activity(
    client_id: int | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    query = db.query(ActivityFeedEntry)
    if actor.role == ActorRole.client:
        query = query.filter(
            ActivityFeedEntry.client_id == actor.client_id,
            ActivityFeedEntry.activity_type != "content_created",
        )
    elif client_id is not None:
        query = query.filter(ActivityFeedEntry.client_id == client_id)

    total = query.count()
    entries = (
        query.order_by(ActivityFeedEntry.created_at.desc(), ActivityFeedEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return success_response(
        [ActivityOut.model_validate(entry).model_dump(mode="json") for entry in entries],
        meta={"total": total, "limit": limit, "offset": offset},
    )
