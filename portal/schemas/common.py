from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.models.entities import ApprovalMode, ContentType
from portal.state_machine.taxonomy import ActionVariant, ActorRole, ContentStatus, WorkflowAction, parse_status


class ApiError(BaseModel):
    code: str
    message: str
    trace_id: str
    details: dict[str, Any] = Field(default_factory=dict)


class ApiEnvelope(BaseModel):
    data: Any = None
    error: ApiError | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class Actor(BaseModel):
    id: str | None = None
    name: str = "System"
    role: ActorRole
    client_id: int | None = None

    @property
    def is_producer(self) -> bool:
        return self.role == ActorRole.producer


class ClientCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    content_approval_mode: ApprovalMode | None = None
    approval_threshold: int | None = Field(default=None, ge=0)


class ApprovalSettingsUpdate(BaseModel):
    content_approval_mode: ApprovalMode
    approval_threshold: int | None = Field(default=None, ge=0)


class ClientOut(BaseModel):
    id: int
    name: str
    content_approval_mode: ApprovalMode
    approval_threshold: int | None = None

    model_config = {"from_attributes": True}


class ContentCreate(BaseModel):
    client_id: int
    title: str = Field(min_length=1, max_length=500)
    body: str = ""
    content_type: ContentType = ContentType.blog_post
    assigned_to: str | None = None
    approval_required: bool | None = None


class StatusHistoryEntryOut(BaseModel):
    sequence: int
    from_status: ContentStatus
    status: ContentStatus
    review_round: int
    changed_at: datetime
    changed_by_id: str | None = None
    changed_by_name: str | None = None
    note: str | None = None

    model_config = {"from_attributes": True}


class ContentOut(BaseModel):
    id: int
    client_id: int
    title: str
    body: str
    content_type: ContentType
    assigned_to: str | None = None
    status: ContentStatus
    approval_required: bool
    review_round: int
    version: int
    status_changed_at: datetime
    created_at: datetime
    status_history: list[StatusHistoryEntryOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ContentListItemOut(BaseModel):
    id: int
    client_id: int
    title: str
    content_type: ContentType
    status: ContentStatus
    status_label: str
    approval_required: bool
    review_round: int
    status_changed_at: datetime


class TransitionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_status: ContentStatus = Field(alias="targetStatus")
    note: str | None = None
    expected_version: int | None = Field(default=None, alias="expectedVersion", ge=0)

    @field_validator("target_status", mode="before")
    @classmethod
    def accept_legacy_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_status(value)
        return value


class ActionButtonOut(BaseModel):
    action: WorkflowAction
    label: str
    target_status: ContentStatus
    requires_note: bool
    variant: ActionVariant


class ActionsOut(BaseModel):
    content_id: int
    status: ContentStatus
    status_label: str
    status_color: str
    actions: list[ActionButtonOut]
    waiting_hint: str | None = None
    progress: dict[str, Any]


class FeedbackOut(BaseModel):
    review_round: int
    note: str
    changed_at: datetime
    changed_by_name: str | None = None


class ReviewRoundCheckOut(BaseModel):
    content_id: int
    stored: int
    derived: int
    consistent: bool


class ActivityOut(BaseModel):
    id: int
    client_id: int | None
    user_id: str | None
    user_name: str
    activity_type: str
    message: str
    metadata_json: dict
    icon: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TransitionCompleted(BaseModel):
    content_id: int
    content_title: str
    client_id: int
    client_name: str
    from_status: ContentStatus | None
    to_status: ContentStatus
    changed_by_id: str | None = None
    changed_by_name: str
    note: str | None = None
    review_round: int = 0
