import argparse
from collections import Counter

from portal.db.init_db import init_db
from portal.db.session import get_session_maker
from portal.models.entities import ApprovalMode, Client, ContentItem, ContentType
from portal.schemas.common import Actor, ContentCreate
from portal.services.activity import record_content_activity
from portal.services.workflow import WorkflowService
from portal.state_machine.taxonomy import ActorRole, ContentStatus

DEMO_CLIENTS = [
    {"name": "Acme Dental", "content_approval_mode": ApprovalMode.full_approval, "approval_threshold": None},
    {"name": "Northside Roofing", "content_approval_mode": ApprovalMode.auto, "approval_threshold": None},
]

# Each piece is walked through these targets after creation.
DEMO_CONTENT = [
    {
        "client": "Acme Dental",
        "title": "5 Signs You Need a Cleaning",
        "content_type": ContentType.blog_post,
        "path": [],
    },
    {
        "client": "Acme Dental",
        "title": "Spring Whitening Promo",
        "content_type": ContentType.ad_copy,
        "path": [
            (ContentStatus.sent_for_review, ActorRole.producer, None),
            (ContentStatus.client_reviewing, ActorRole.client, None),
            (ContentStatus.revisions_requested, ActorRole.client, "Mention the April deadline in the headline"),
            (ContentStatus.sent_for_review, ActorRole.producer, None),
        ],
    },
    {
        "client": "Northside Roofing",
        "title": "Storm Season Checklist",
        "content_type": ContentType.social_post,
        "path": [
            (ContentStatus.sent_for_review, ActorRole.producer, None),
            (ContentStatus.client_reviewing, ActorRole.client, None),
            (ContentStatus.published, ActorRole.client, None),
        ],
    },
]


def seed(dry_run: bool = False) -> dict[str, int]:
    init_db()
    db = get_session_maker()()
    stats: Counter[str] = Counter()
    producer = Actor(id="seed-producer", name="Seed Producer", role=ActorRole.producer)

    try:
        clients: dict[str, Client] = {}
        for item in DEMO_CLIENTS:
            client = db.query(Client).filter(Client.name == item["name"]).one_or_none()
            if client is None:
                client = Client(**item)
                db.add(client)
                db.flush()
                stats["clients_created"] += 1
            clients[client.name] = client

        if dry_run:
            db.rollback()
            stats["dry_run"] = 1
            return dict(stats)
        db.commit()

        def record_activity(event) -> None:
            record_content_activity(db, event)
            db.commit()

        service = WorkflowService(db, publish=record_activity)
        for piece in DEMO_CONTENT:
            client = clients[piece["client"]]
            exists = (
                db.query(ContentItem)
                .filter(ContentItem.client_id == client.id, ContentItem.title == piece["title"])
                .one_or_none()
            )
            if exists:
                stats["content_skipped"] += 1
                continue

            item = service.create_content(
                ContentCreate(client_id=client.id, title=piece["title"], content_type=piece["content_type"]),
                producer,
            )
            stats["content_created"] += 1
            reviewer = Actor(id="seed-client", name=f"{client.name} Reviewer", role=ActorRole.client, client_id=client.id)
            for target, role, note in piece["path"]:
                actor = producer if role == ActorRole.producer else reviewer
                service.transition(item.id, target, actor, note=note)
                stats["transitions"] += 1

        return dict(stats)
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo clients and content for the client portal")
    parser.add_argument("--dry-run", action="store_true", help="Validate clients without committing anything")
    args = parser.parse_args()

    stats = seed(dry_run=args.dry_run)
    print(f"Seed completed: {stats}")


if __name__ == "__main__":
    main()
