from dataclasses import dataclass
from typing import Protocol

from portal.core.errors import InvalidTransition, MissingNote, WorkflowError
from portal.state_machine.taxonomy import ActorRole, ContentStatus, is_terminal
from portal.state_machine.transitions import Transition, allowed_transitions, find_transition


class HasWorkflowState(Protocol):
    status: ContentStatus
    approval_required: bool


@dataclass(frozen=True)
class TransitionCheck:
    transition: Transition | None = None
    error: WorkflowError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str | None:
        return self.error.message if self.error else None


def validate(
    item: HasWorkflowState,
    requested_target: ContentStatus,
    actor_role: ActorRole,
    note: str | None = None,
) -> TransitionCheck:
    """Check a requested transition without side effects.

    Safe to call speculatively; nothing is persisted and nothing raises.
    """
    current = item.status
    if is_terminal(current):
        return TransitionCheck(
            error=InvalidTransition(
                f"Content is {current.value}; no further transitions are possible",
                details={"current_status": current.value, "allowed": []},
            )
        )

    transition = find_transition(current, requested_target, actor_role, item.approval_required)
    if transition is None:
        allowed = [t.target_status.value for t in allowed_transitions(current, actor_role, item.approval_required)]
        return TransitionCheck(
            error=InvalidTransition(
                f"Invalid transition for {actor_role.value}: {current.value} -> {requested_target.value}",
                details={"current_status": current.value, "allowed": allowed},
            )
        )

    if transition.requires_note and not (note or "").strip():
        return TransitionCheck(transition=transition, error=MissingNote())

    return TransitionCheck(transition=transition)


def enforce_transition(
    item: HasWorkflowState,
    requested_target: ContentStatus,
    actor_role: ActorRole,
    note: str | None = None,
) -> Transition:
    check = validate(item, requested_target, actor_role, note)
    if check.error is not None:
        raise check.error
    return check.transition
