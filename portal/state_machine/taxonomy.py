from enum import Enum


class ContentStatus(str, Enum):
    draft = "draft"
    sent_for_review = "sent_for_review"
    client_reviewing = "client_reviewing"
    revisions_requested = "revisions_requested"
    approved = "approved"
    published = "published"


class ActorRole(str, Enum):
    producer = "producer"
    client = "client"


class WorkflowAction(str, Enum):
    submit_for_review = "submit_for_review"
    begin_review = "begin_review"
    approve = "approve"
    request_revisions = "request_revisions"
    resubmit = "resubmit"
    publish = "publish"


class ActionVariant(str, Enum):
    primary = "primary"
    warning = "warning"
    neutral = "neutral"


INITIAL_STATUS = ContentStatus.draft
TERMINAL_STATUSES = frozenset({ContentStatus.published})

# Earlier revisions of the portal stored a smaller vocabulary. Those names are
# accepted on input and mapped onto the current one; they are never stored.
LEGACY_STATUS_ALIASES = {
    "pending_review": ContentStatus.sent_for_review,
    "revision": ContentStatus.revisions_requested,
    "posted": ContentStatus.published,
}


def parse_status(value: "str | ContentStatus") -> ContentStatus:
    if isinstance(value, ContentStatus):
        return value
    normalized = (value or "").strip().lower()
    if normalized in LEGACY_STATUS_ALIASES:
        return LEGACY_STATUS_ALIASES[normalized]
    try:
        return ContentStatus(normalized)
    except ValueError:
        raise ValueError(f"Unknown content status: {value!r}") from None


def is_terminal(status: ContentStatus) -> bool:
    return status in TERMINAL_STATUSES
