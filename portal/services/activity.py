from sqlalchemy.orm import Session

from portal.models.entities import ActivityFeedEntry
from portal.schemas.common import TransitionCompleted
from portal.state_machine.taxonomy import ContentStatus

_STATUS_ICONS = {
    ContentStatus.draft: "edit",
    ContentStatus.sent_for_review: "send",
    ContentStatus.client_reviewing: "eye",
    ContentStatus.revisions_requested: "alert-triangle",
    ContentStatus.approved: "check",
    ContentStatus.published: "globe",
}


def icon_for_status(status: ContentStatus) -> str:
    return _STATUS_ICONS.get(status, "info")


def activity_message(event: TransitionCompleted) -> str:
    who = event.changed_by_name
    title = f"'{event.content_title}'"
    client = event.client_name
    round_suffix = f" (Round {event.review_round})" if event.review_round else ""

    if event.from_status is None:
        return f"{who} created new content {title} for {client}"

    messages = {
        (ContentStatus.draft, ContentStatus.sent_for_review): f"{who} sent {title} to {client} for review",
        (ContentStatus.sent_for_review, ContentStatus.client_reviewing): (
            f"{who} from {client} started reviewing {title}"
        ),
        (ContentStatus.sent_for_review, ContentStatus.published): f"{who} published {title} without review",
        (ContentStatus.client_reviewing, ContentStatus.approved): f"{who} from {client} approved {title}",
        (ContentStatus.client_reviewing, ContentStatus.published): f"{who} from {client} published {title}",
        (ContentStatus.client_reviewing, ContentStatus.revisions_requested): (
            f"{who} from {client} requested revisions on {title}{round_suffix}"
        ),
        (ContentStatus.revisions_requested, ContentStatus.sent_for_review): (
            f"{who} resubmitted {title} for review{round_suffix}"
        ),
        (ContentStatus.approved, ContentStatus.published): f"{who} published {title}",
    }
    fallback = f"{who} changed {title} from {event.from_status.value} to {event.to_status.value}"
    return messages.get((event.from_status, event.to_status), fallback)


def record_content_activity(db: Session, event: TransitionCompleted) -> ActivityFeedEntry:
    activity_type = "content_created" if event.from_status is None else "content_status_change"
    entry = ActivityFeedEntry(
        client_id=event.client_id,
        user_id=event.changed_by_id,
        user_name=event.changed_by_name,
        activity_type=activity_type,
        message=activity_message(event),
        metadata_json={
            "content_id": event.content_id,
            "content_title": event.content_title,
            "from_status": event.from_status.value if event.from_status else None,
            "to_status": event.to_status.value,
            "review_round": event.review_round or None,
            "note": event.note or None,
        },
        icon=icon_for_status(event.to_status),
    )
    db.add(entry)
    return entry


def record_client_setting_change(
    db: Session,
    client_id: int,
    client_name: str,
    user_id: str | None,
    user_name: str,
    setting_name: str,
    old_value: object,
    new_value: object,
) -> ActivityFeedEntry:
    entry = ActivityFeedEntry(
        client_id=client_id,
        user_id=user_id,
        user_name=user_name,
        activity_type="client_setting_change",
        message=f'{user_name} changed {setting_name} for {client_name} from "{old_value}" to "{new_value}"',
        metadata_json={"setting_name": setting_name, "old_value": old_value, "new_value": new_value},
        icon="settings",
    )
    db.add(entry)
    return entry
