"""The content transition table.

This module is the only place workflow policy lives: which role may move
an item from which status to which status, and whether the move needs a
note. Everything else (validation, action buttons, the ownership rules in
the service) asks this table instead of re-deriving rules.
"""

from dataclasses import dataclass

from portal.state_machine.taxonomy import (
    ActionVariant,
    ActorRole,
    ContentStatus,
    WorkflowAction,
)


@dataclass(frozen=True)
class Transition:
    action: WorkflowAction
    target_status: ContentStatus
    label: str
    role_allowed: ActorRole
    requires_note: bool = False
    variant: ActionVariant = ActionVariant.primary


_SUBMIT = Transition(
    WorkflowAction.submit_for_review, ContentStatus.sent_for_review, "Send for Review", ActorRole.producer
)
_BEGIN_REVIEW = Transition(
    WorkflowAction.begin_review, ContentStatus.client_reviewing, "Begin Review", ActorRole.client
)
_APPROVE = Transition(WorkflowAction.approve, ContentStatus.approved, "Approve", ActorRole.client)
_CLIENT_PUBLISH = Transition(WorkflowAction.publish, ContentStatus.published, "Publish", ActorRole.client)
_REQUEST_REVISIONS = Transition(
    WorkflowAction.request_revisions,
    ContentStatus.revisions_requested,
    "Request Revisions",
    ActorRole.client,
    requires_note=True,
    variant=ActionVariant.warning,
)
_RESUBMIT = Transition(
    WorkflowAction.resubmit, ContentStatus.sent_for_review, "Resubmit for Review", ActorRole.producer
)
_PRODUCER_PUBLISH = Transition(WorkflowAction.publish, ContentStatus.published, "Publish", ActorRole.producer)
_AUTO_PUBLISH = Transition(
    WorkflowAction.publish,
    ContentStatus.published,
    "Publish Without Review",
    ActorRole.producer,
    variant=ActionVariant.neutral,
)

# Keyed by (status, approval_required). Order within a row is display order:
# affirmative actions first, revision requests last.
_TABLE: dict[tuple[ContentStatus, bool], tuple[Transition, ...]] = {
    (ContentStatus.draft, True): (_SUBMIT,),
    (ContentStatus.draft, False): (_SUBMIT,),
    (ContentStatus.sent_for_review, True): (_BEGIN_REVIEW,),
    (ContentStatus.sent_for_review, False): (_BEGIN_REVIEW, _AUTO_PUBLISH),
    (ContentStatus.client_reviewing, True): (_APPROVE, _REQUEST_REVISIONS),
    (ContentStatus.client_reviewing, False): (_CLIENT_PUBLISH, _REQUEST_REVISIONS),
    (ContentStatus.revisions_requested, True): (_RESUBMIT,),
    (ContentStatus.revisions_requested, False): (_RESUBMIT,),
    (ContentStatus.approved, True): (_PRODUCER_PUBLISH,),
    # Items that skip approval never reach `approved`; nothing to offer there.
    (ContentStatus.approved, False): (),
    (ContentStatus.published, True): (),
    (ContentStatus.published, False): (),
}


def all_transitions(status: ContentStatus, approval_required: bool) -> list[Transition]:
    """Every transition out of ``status`` regardless of role."""
    return list(_TABLE.get((status, bool(approval_required)), ()))


def allowed_transitions(
    status: ContentStatus, role: ActorRole, approval_required: bool
) -> list[Transition]:
    return [t for t in all_transitions(status, approval_required) if t.role_allowed == role]


def find_transition(
    status: ContentStatus,
    target: ContentStatus,
    role: ActorRole,
    approval_required: bool,
) -> Transition | None:
    for transition in allowed_transitions(status, role, approval_required):
        if transition.target_status == target:
            return transition
    return None


def can_transition(
    status: ContentStatus,
    target: ContentStatus,
    role: ActorRole,
    approval_required: bool,
) -> bool:
    return find_transition(status, target, role, approval_required) is not None


def valid_targets(status: ContentStatus, approval_required: bool) -> list[ContentStatus]:
    targets: list[ContentStatus] = []
    for transition in all_transitions(status, approval_required):
        if transition.target_status not in targets:
            targets.append(transition.target_status)
    return targets
