import pytest

from portal.state_machine.taxonomy import ActorRole, ContentStatus, WorkflowAction
from portal.state_machine.transitions import allowed_transitions, can_transition, valid_targets


def _targets(status, role, approval_required):
    return [t.target_status for t in allowed_transitions(status, role, approval_required)]


def test_client_review_with_approval_offers_approve_and_revisions():
    transitions = allowed_transitions(ContentStatus.client_reviewing, ActorRole.client, True)
    assert [t.action for t in transitions] == [WorkflowAction.approve, WorkflowAction.request_revisions]
    assert [t.requires_note for t in transitions] == [False, True]


def test_client_review_without_approval_offers_publish_and_revisions():
    assert _targets(ContentStatus.client_reviewing, ActorRole.client, False) == [
        ContentStatus.published,
        ContentStatus.revisions_requested,
    ]


@pytest.mark.parametrize("approval_required", [True, False])
def test_single_step_rows(approval_required):
    assert _targets(ContentStatus.draft, ActorRole.producer, approval_required) == [ContentStatus.sent_for_review]
    assert _targets(ContentStatus.sent_for_review, ActorRole.client, approval_required) == [
        ContentStatus.client_reviewing
    ]
    assert _targets(ContentStatus.revisions_requested, ActorRole.producer, approval_required) == [
        ContentStatus.sent_for_review
    ]


def test_approved_has_single_producer_publish():
    transitions = allowed_transitions(ContentStatus.approved, ActorRole.producer, True)
    assert [(t.action, t.target_status) for t in transitions] == [(WorkflowAction.publish, ContentStatus.published)]
    assert allowed_transitions(ContentStatus.approved, ActorRole.client, True) == []


def test_producer_may_publish_unreviewed_content_only_without_approval():
    assert can_transition(ContentStatus.sent_for_review, ContentStatus.published, ActorRole.producer, False)
    assert not can_transition(ContentStatus.sent_for_review, ContentStatus.published, ActorRole.producer, True)


@pytest.mark.parametrize("role", list(ActorRole))
@pytest.mark.parametrize("approval_required", [True, False])
def test_published_is_terminal(role, approval_required):
    assert allowed_transitions(ContentStatus.published, role, approval_required) == []
    assert valid_targets(ContentStatus.published, approval_required) == []


@pytest.mark.parametrize("approval_required", [True, False])
def test_client_cannot_move_drafts(approval_required):
    for target in ContentStatus:
        assert not can_transition(ContentStatus.draft, target, ActorRole.client, approval_required)


def test_approved_never_reachable_without_approval_flag():
    for status in ContentStatus:
        assert ContentStatus.approved not in valid_targets(status, False)


def test_only_revision_requests_need_a_note():
    for status in ContentStatus:
        for role in ActorRole:
            for approval_required in (True, False):
                for transition in allowed_transitions(status, role, approval_required):
                    expected = transition.target_status == ContentStatus.revisions_requested
                    assert transition.requires_note is expected
