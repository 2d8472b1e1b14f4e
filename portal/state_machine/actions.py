from dataclasses import asdict, dataclass

from portal.state_machine.taxonomy import ActionVariant, ActorRole, ContentStatus, WorkflowAction
from portal.state_machine.transitions import allowed_transitions


@dataclass(frozen=True)
class ActionButton:
    action: WorkflowAction
    label: str
    target_status: ContentStatus
    requires_note: bool
    variant: ActionVariant

    def as_dict(self) -> dict:
        data = asdict(self)
        data["action"] = self.action.value
        data["target_status"] = self.target_status.value
        data["variant"] = self.variant.value
        return data


_PRODUCER_LABELS = {
    ContentStatus.draft: "Draft",
    ContentStatus.sent_for_review: "Sent for Review",
    ContentStatus.client_reviewing: "Client Reviewing",
    ContentStatus.revisions_requested: "Revisions Requested",
    ContentStatus.approved: "Approved",
    ContentStatus.published: "Published",
}

_CLIENT_LABELS = {
    ContentStatus.draft: "Being Written",
    ContentStatus.sent_for_review: "Ready for Your Review",
    ContentStatus.client_reviewing: "You're Reviewing",
    ContentStatus.revisions_requested: "Your Feedback Sent",
    ContentStatus.approved: "You Approved This",
    ContentStatus.published: "Published",
}

_BADGE_COLORS = {
    ContentStatus.draft: "draft",
    ContentStatus.sent_for_review: "review",
    ContentStatus.client_reviewing: "reviewing",
    ContentStatus.revisions_requested: "revision",
    ContentStatus.approved: "approved",
    ContentStatus.published: "published",
}

_PRODUCER_WAITING = {
    ContentStatus.sent_for_review: "Waiting for client…",
    ContentStatus.client_reviewing: "Client is reviewing…",
}

_CLIENT_WAITING = {
    ContentStatus.revisions_requested: "Your feedback is being worked on…",
    ContentStatus.approved: "Preparing to publish…",
}


def next_actions(status: ContentStatus, role: ActorRole, approval_required: bool) -> list[ActionButton]:
    """Buttons to offer ``role`` for an item in ``status``.

    Terminal or not-applicable combinations give an empty list.
    """
    return [
        ActionButton(
            action=t.action,
            label=t.label,
            target_status=t.target_status,
            requires_note=t.requires_note,
            variant=t.variant,
        )
        for t in allowed_transitions(status, role, approval_required)
    ]


def status_label(status: ContentStatus, perspective: ActorRole) -> str:
    labels = _PRODUCER_LABELS if perspective == ActorRole.producer else _CLIENT_LABELS
    return labels.get(status, status.value)


def status_color(status: ContentStatus) -> str:
    return _BADGE_COLORS.get(status, "default")


def waiting_hint(status: ContentStatus, role: ActorRole, approval_required: bool) -> str | None:
    # Only shown when the role has nothing to click.
    if next_actions(status, role, approval_required):
        return None
    hints = _PRODUCER_WAITING if role == ActorRole.producer else _CLIENT_WAITING
    return hints.get(status)
