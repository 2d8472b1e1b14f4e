import argparse

from portal.db.session import get_session_maker
from portal.services.consistency import scan_review_rounds


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Compare stored review rounds with the counts derived from status history"
    )
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Overwrite drifted counters with the value derived from history",
    )
    args = parser.parse_args()

    db = get_session_maker()()
    try:
        summary = scan_review_rounds(db, repair=args.repair)
        db.commit()
    finally:
        db.close()

    print(f"Scanned {summary['scanned']} items; drifted: {summary['drifted'] or 'none'}; repaired: {summary['repaired']}")


if __name__ == "__main__":
    main()
