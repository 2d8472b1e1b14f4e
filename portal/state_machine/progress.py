"""Progress-bar steps for the content review timeline."""

from dataclasses import dataclass
from enum import Enum

from portal.state_machine.taxonomy import ContentStatus


class StepState(str, Enum):
    completed = "completed"
    active = "active"
    revision = "revision"
    upcoming = "upcoming"


@dataclass(frozen=True)
class ContentStep:
    key: ContentStatus
    label: str
    icon: str


_STEPS_WITH_APPROVAL = (
    ContentStep(ContentStatus.draft, "Draft Created", "edit"),
    ContentStep(ContentStatus.sent_for_review, "Sent for Review", "send"),
    ContentStep(ContentStatus.client_reviewing, "Client Review", "eye"),
    ContentStep(ContentStatus.approved, "Approved", "check"),
    ContentStep(ContentStatus.published, "Published", "globe"),
)

_STEPS_WITHOUT_APPROVAL = tuple(
    step for step in _STEPS_WITH_APPROVAL if step.key != ContentStatus.approved
)


def content_steps(approval_required: bool) -> list[ContentStep]:
    return list(_STEPS_WITH_APPROVAL if approval_required else _STEPS_WITHOUT_APPROVAL)


def step_index(status: ContentStatus, approval_required: bool) -> int:
    # revisions_requested is not a dot of its own; it sits on the review step.
    if status == ContentStatus.revisions_requested:
        status = ContentStatus.client_reviewing
    keys = [step.key for step in content_steps(approval_required)]
    return keys.index(status) if status in keys else -1


def step_state(step: ContentStatus, current: ContentStatus, approval_required: bool) -> StepState:
    keys = [s.key for s in content_steps(approval_required)]
    if step not in keys:
        return StepState.upcoming
    position = keys.index(step)

    if current == ContentStatus.revisions_requested:
        if step == ContentStatus.client_reviewing:
            return StepState.revision
        if step == ContentStatus.sent_for_review:
            return StepState.active
        if position < keys.index(ContentStatus.sent_for_review):
            return StepState.completed
        return StepState.upcoming

    current_position = step_index(current, approval_required)
    if current_position == -1:
        return StepState.upcoming
    if position < current_position:
        return StepState.completed
    if position == current_position:
        # The final step is reached, not worked on.
        if step == ContentStatus.published:
            return StepState.completed
        return StepState.active
    return StepState.upcoming


def progress_percentage(status: ContentStatus, approval_required: bool) -> int:
    if status == ContentStatus.published:
        return 100
    index = step_index(status, approval_required)
    if index == -1:
        return 0
    return round(index / (len(content_steps(approval_required)) - 1) * 100)


def progress_payload(status: ContentStatus, approval_required: bool) -> dict:
    return {
        "percentage": progress_percentage(status, approval_required),
        "steps": [
            {
                "key": step.key.value,
                "label": step.label,
                "icon": step.icon,
                "state": step_state(step.key, status, approval_required).value,
            }
            for step in content_steps(approval_required)
        ],
    }
