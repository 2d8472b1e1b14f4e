import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from portal.core.errors import Conflict, InvalidTransition, MissingNote, NotFound, PermissionDenied, StoreUnavailable
from portal.models.entities import ActivityFeedEntry, ApprovalMode, AuditLog, Client, ContentItem
from portal.schemas.common import Actor, ContentCreate
from portal.services.consistency import scan_review_rounds
from portal.services.workflow import WorkflowService
from portal.state_machine.taxonomy import ActorRole, ContentStatus


@pytest.fixture
def events():
    return []


@pytest.fixture
def service(db_session, events):
    return WorkflowService(db_session, publish=events.append)


def _create(service, client, producer, **overrides):
    payload = ContentCreate(client_id=client.id, title=overrides.pop("title", "Spring Launch"), **overrides)
    return service.create_content(payload, producer)


def _assert_consistent(service, item):
    history = service.history(item.id)
    assert history[-1].status == item.status
    assert item.review_round == sum(1 for entry in history if entry.status == ContentStatus.revisions_requested)
    assert [entry.sequence for entry in history] == list(range(1, len(history) + 1))


def test_full_review_cycle(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    assert item.status == ContentStatus.draft
    assert item.approval_required is True
    assert service.history(item.id) == []

    item = service.transition(item.id, ContentStatus.sent_for_review, producer)
    assert len(service.history(item.id)) == 1

    service.transition(item.id, ContentStatus.client_reviewing, reviewer)
    item = service.transition(item.id, ContentStatus.revisions_requested, reviewer, note="fix the headline")
    assert item.review_round == 1
    assert len(service.history(item.id)) == 3

    item = service.transition(item.id, ContentStatus.sent_for_review, producer)
    assert item.review_round == 1
    assert len(service.history(item.id)) == 4

    service.transition(item.id, ContentStatus.client_reviewing, reviewer)
    item = service.transition(item.id, ContentStatus.approved, reviewer)
    assert len(service.history(item.id)) == 6

    item = service.transition(item.id, ContentStatus.published, producer)
    history = service.history(item.id)
    assert item.status == ContentStatus.published
    assert len(history) == 7
    assert item.version == 7
    assert item.review_round == 1
    _assert_consistent(service, item)

    feedback = service.list_feedback(item.id, reviewer)
    assert [(entry.review_round, entry.note) for entry in feedback] == [(1, "fix the headline")]


def test_history_matches_state_after_every_step(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    steps = [
        (ContentStatus.sent_for_review, producer, None),
        (ContentStatus.client_reviewing, reviewer, None),
        (ContentStatus.revisions_requested, reviewer, "tone it down"),
        (ContentStatus.sent_for_review, producer, None),
        (ContentStatus.client_reviewing, reviewer, None),
        (ContentStatus.revisions_requested, reviewer, "one more pass"),
    ]
    for target, actor, note in steps:
        item = service.transition(item.id, target, actor, note=note)
        _assert_consistent(service, item)
    assert item.review_round == 2


def test_publish_without_approval_skips_approved(service, db_session, producer):
    relaxed = Client(name="Globex", content_approval_mode=ApprovalMode.auto)
    db_session.add(relaxed)
    db_session.commit()
    client_actor = Actor(id="u-client-2", name="Sam", role=ActorRole.client, client_id=relaxed.id)

    item = _create(service, relaxed, producer)
    assert item.approval_required is False

    service.transition(item.id, ContentStatus.sent_for_review, producer)
    service.transition(item.id, ContentStatus.client_reviewing, client_actor)
    with pytest.raises(InvalidTransition):
        service.transition(item.id, ContentStatus.approved, client_actor)
    item = service.transition(item.id, ContentStatus.published, client_actor)

    statuses = [entry.status for entry in service.history(item.id)]
    assert statuses == [ContentStatus.sent_for_review, ContentStatus.client_reviewing, ContentStatus.published]
    assert ContentStatus.approved not in statuses


def test_producer_can_publish_without_review(service, db_session, producer):
    relaxed = Client(name="Initech", content_approval_mode=ApprovalMode.auto)
    db_session.add(relaxed)
    db_session.commit()

    item = _create(service, relaxed, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer)
    item = service.transition(item.id, ContentStatus.published, producer)
    assert item.status == ContentStatus.published


def test_rejections_change_nothing(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer)
    item = service.transition(item.id, ContentStatus.client_reviewing, reviewer)

    with pytest.raises(MissingNote):
        service.transition(item.id, ContentStatus.revisions_requested, reviewer, note="   ")
    with pytest.raises(InvalidTransition):
        service.transition(item.id, ContentStatus.published, producer)

    item = service._get_item(item.id)
    assert item.status == ContentStatus.client_reviewing
    assert item.version == 2
    assert len(service.history(item.id)) == 2


def test_published_is_final(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    for target, actor in (
        (ContentStatus.sent_for_review, producer),
        (ContentStatus.client_reviewing, reviewer),
        (ContentStatus.approved, reviewer),
        (ContentStatus.published, producer),
    ):
        service.transition(item.id, target, actor)

    for target in ContentStatus:
        for actor in (producer, reviewer):
            with pytest.raises(InvalidTransition):
                service.transition(item.id, target, actor, note="again")


def test_notes_are_trimmed(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer, note="  ")
    service.transition(item.id, ContentStatus.client_reviewing, reviewer)
    service.transition(item.id, ContentStatus.revisions_requested, reviewer, note="  new hero image \n")
    notes = [entry.note for entry in service.history(item.id)]
    assert notes == [None, None, "new hero image"]


def test_concurrent_transitions_only_one_wins(db_session, other_session, acme, producer, reviewer):
    first = WorkflowService(db_session, publish=lambda event: None)
    second = WorkflowService(other_session, publish=lambda event: None)

    item = _create(first, acme, producer)
    first.transition(item.id, ContentStatus.sent_for_review, producer)
    first.transition(item.id, ContentStatus.client_reviewing, reviewer)

    snapshot_a = first.load_snapshot(item.id, reviewer)
    snapshot_b = second.load_snapshot(item.id, reviewer)
    assert snapshot_a == snapshot_b

    first.apply_transition(snapshot_a, ContentStatus.approved, reviewer)
    with pytest.raises(Conflict) as exc_info:
        second.apply_transition(snapshot_b, ContentStatus.revisions_requested, reviewer, note="too late")

    assert exc_info.value.details["current_status"] == "approved"
    assert exc_info.value.details["current_version"] == 3

    item = second._get_item(item.id)
    assert item.status == ContentStatus.approved
    assert item.review_round == 0
    history = second.history(item.id)
    assert len(history) == 3
    assert history[-1].status == ContentStatus.approved


def test_stale_expected_version_is_a_conflict(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer, expected_version=0)

    with pytest.raises(Conflict) as exc_info:
        service.transition(item.id, ContentStatus.client_reviewing, reviewer, expected_version=0)
    assert exc_info.value.details["current_version"] == 1

    item = service.transition(item.id, ContentStatus.client_reviewing, reviewer, expected_version=1)
    assert item.version == 2


def test_write_failure_leaves_item_untouched(service, db_session, monkeypatch, acme, producer):
    item = _create(service, acme, producer)
    snapshot = service.load_snapshot(item.id, producer)

    def broken_execute(*args, **kwargs):
        raise OperationalError("UPDATE content_items", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "execute", broken_execute)
    with pytest.raises(StoreUnavailable) as exc_info:
        service.apply_transition(snapshot, ContentStatus.sent_for_review, producer)
    monkeypatch.undo()

    assert exc_info.value.details == {"retryable": True}
    item = service._get_item(item.id)
    assert item.status == ContentStatus.draft
    assert item.version == 0
    assert service.history(item.id) == []


def test_reads_retry_transient_failures(service, db_session, monkeypatch, acme, producer):
    item = _create(service, acme, producer)
    real_get = db_session.get
    calls = {"count": 0}

    def flaky_get(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] < 3:
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return real_get(*args, **kwargs)

    monkeypatch.setattr(db_session, "get", flaky_get)
    snapshot = service.load_snapshot(item.id, producer)
    assert snapshot.status == ContentStatus.draft
    assert calls["count"] == 3


def test_reads_give_up_after_retries(service, db_session, monkeypatch, acme, producer):
    item = _create(service, acme, producer)

    def dead_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "get", dead_get)
    with pytest.raises(StoreUnavailable):
        service.load_snapshot(item.id, producer)


def test_clients_only_see_their_own_content(service, db_session, acme, producer, reviewer):
    other = Client(name="Umbrella")
    db_session.add(other)
    db_session.commit()
    outsider = Actor(id="u-client-9", name="Alex", role=ActorRole.client, client_id=other.id)

    item = _create(service, acme, producer)
    with pytest.raises(NotFound):
        service.get_content_state(item.id, reviewer)

    service.transition(item.id, ContentStatus.sent_for_review, producer)
    assert service.get_content_state(item.id, reviewer).status == ContentStatus.sent_for_review
    with pytest.raises(NotFound):
        service.get_content_state(item.id, outsider)
    with pytest.raises(NotFound):
        service.transition(item.id, ContentStatus.client_reviewing, outsider)

    items, total = service.list_content(outsider)
    assert (items, total) == ([], 0)


def test_list_hides_drafts_from_clients(service, acme, producer, reviewer):
    draft = _create(service, acme, producer, title="Draft Post")
    sent = _create(service, acme, producer, title="Sent Post")
    service.transition(sent.id, ContentStatus.sent_for_review, producer)

    items, total = service.list_content(reviewer)
    assert [item.id for item in items] == [sent.id]
    assert total == 1

    items, total = service.list_content(producer, status=ContentStatus.draft)
    assert [item.id for item in items] == [draft.id]


def test_only_producers_create_content(service, acme, reviewer):
    with pytest.raises(PermissionDenied):
        _create(service, acme, reviewer)


def test_create_for_missing_client(service, producer, clean_db):
    with pytest.raises(NotFound):
        service.create_content(ContentCreate(client_id=999, title="Orphan"), producer)


def test_initial_approval_threshold(service, db_session, producer):
    onboarding = Client(
        name="Hooli", content_approval_mode=ApprovalMode.initial_approval, approval_threshold=1
    )
    db_session.add(onboarding)
    db_session.commit()
    client_actor = Actor(id="u-client-3", name="Gavin", role=ActorRole.client, client_id=onboarding.id)

    first = _create(service, onboarding, producer, title="First")
    assert first.approval_required is True
    second = _create(service, onboarding, producer, title="Second")
    assert second.approval_required is True

    service.transition(first.id, ContentStatus.sent_for_review, producer)
    service.transition(first.id, ContentStatus.client_reviewing, client_actor)
    service.transition(first.id, ContentStatus.approved, client_actor)

    third = _create(service, onboarding, producer, title="Third")
    assert third.approval_required is False


def test_explicit_approval_flag_wins(service, acme, producer):
    item = _create(service, acme, producer, approval_required=False)
    assert item.approval_required is False


def test_events_emitted_after_commit(service, events, acme, producer, reviewer):
    item = _create(service, acme, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer)

    assert [(e.from_status, e.to_status) for e in events] == [
        (None, ContentStatus.draft),
        (ContentStatus.draft, ContentStatus.sent_for_review),
    ]
    assert events[-1].client_name == "Acme"
    assert events[-1].changed_by_name == "Dana"


def test_failing_subscriber_does_not_undo_transition(db_session, acme, producer):
    def explode(event):
        raise RuntimeError("broker down")

    service = WorkflowService(db_session, publish=explode)
    item = _create(service, acme, producer)
    item = service.transition(item.id, ContentStatus.sent_for_review, producer)
    assert item.status == ContentStatus.sent_for_review
    assert len(service.history(item.id)) == 1


def test_activity_feed_written_by_task(db_session, acme, producer, reviewer):
    service = WorkflowService(db_session)
    item = _create(service, acme, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer)
    service.transition(item.id, ContentStatus.client_reviewing, reviewer)
    service.transition(item.id, ContentStatus.revisions_requested, reviewer, note="fix the headline")

    entries = db_session.query(ActivityFeedEntry).order_by(ActivityFeedEntry.id.asc()).all()
    assert [entry.activity_type for entry in entries] == [
        "content_created",
        "content_status_change",
        "content_status_change",
        "content_status_change",
    ]
    assert entries[-1].message == "Riley from Acme requested revisions on 'Spring Launch' (Round 1)"
    assert entries[-1].metadata_json["note"] == "fix the headline"
    assert entries[-1].icon == "alert-triangle"


def test_review_round_drift_detected_and_repaired(service, db_session, acme, producer, reviewer):
    item = _create(service, acme, producer)
    service.transition(item.id, ContentStatus.sent_for_review, producer)
    service.transition(item.id, ContentStatus.client_reviewing, reviewer)
    service.transition(item.id, ContentStatus.revisions_requested, reviewer, note="fix it")

    db_session.execute(update(ContentItem).where(ContentItem.id == item.id).values(review_round=5))
    db_session.commit()

    check = service.check_review_round(item.id)
    assert (check.stored, check.derived, check.consistent) == (5, 1, False)

    summary = scan_review_rounds(db_session)
    db_session.commit()
    assert summary == {"scanned": 1, "drifted": [item.id], "repaired": 0}
    assert db_session.query(AuditLog).filter(AuditLog.action == "review_round_drift").count() == 1

    summary = scan_review_rounds(db_session, repair=True)
    db_session.commit()
    assert summary["repaired"] == 1

    item = service._get_item(item.id)
    assert item.review_round == 1
    assert item.version == 4
    assert service.check_review_round(item.id).consistent

    item = service.transition(item.id, ContentStatus.sent_for_review, producer)
    assert item.version == 5
    _assert_consistent_after_repair(service, item)


def _assert_consistent_after_repair(service, item):
    # A repair bumps the version without a history row, so sequences skip one.
    history = service.history(item.id)
    assert history[-1].status == item.status
    assert history[-1].sequence == item.version


def test_client_cannot_transition_own_draft(service, acme, producer, reviewer):
    item = _create(service, acme, producer)
    with pytest.raises(NotFound):
        service.transition(item.id, ContentStatus.sent_for_review, reviewer)
    with pytest.raises(NotFound):
        service.load_snapshot(item.id, reviewer)
    assert service.load_snapshot(item.id, producer).status == ContentStatus.draft


def test_drift_recorded_when_repair_loses_race(service, db_session, monkeypatch, acme, producer):
    from portal.services import consistency

    item = _create(service, acme, producer)
    db_session.execute(update(ContentItem).where(ContentItem.id == item.id).values(review_round=2))
    db_session.commit()

    monkeypatch.setattr(consistency, "repair_review_round", lambda db, item, check: False)
    summary = consistency.scan_review_rounds(db_session, repair=True)
    db_session.commit()

    assert summary == {"scanned": 1, "drifted": [item.id], "repaired": 0}
    audit = db_session.query(AuditLog).filter(AuditLog.action == "review_round_drift").one()
    assert audit.entity_id == item.id
    assert audit.payload_json == {"stored": 2, "derived": 0}
