"""
Cron job for comment retention.

This script should be run daily to:
1. Permanently remove spam older than the spam retention window
2. Permanently remove soft-deleted comments older than the deleted retention window
"""

from __future__ import annotations

import argparse
import logging

from sqlalchemy.orm import Session

from comment_guard.core.settings import settings
from comment_guard.db.session import SessionLocal
from comment_guard.services.registry import CommentServices, build_comment_services

logger = logging.getLogger(__name__)


def run_retention(
    db: Session,
    services: CommentServices,
    *,
    spam: bool = True,
    deleted: bool = True,
) -> dict[str, int]:
    """Run the selected purges and return how many comments each removed.

    Args:
        db: Database session
        services: Service bundle whose settings decide the retention windows
        spam: Purge old spam
        deleted: Purge old soft-deleted comments
    """
    services.settings.get_settings(db)
    removed: dict[str, int] = {}
    if spam:
        removed["spam"] = services.moderation.purge_old_spam(db)
    if deleted:
        removed["deleted"] = services.moderation.purge_deleted(db)
    return removed


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Purge comments past their retention window")
    parser.add_argument("--skip-spam", action="store_true", help="Do not purge old spam")
    parser.add_argument(
        "--skip-deleted",
        action="store_true",
        help="Do not purge old soft-deleted comments",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    db = SessionLocal()
    try:
        removed = run_retention(
            db,
            build_comment_services(),
            spam=not args.skip_spam,
            deleted=not args.skip_deleted,
        )
    finally:
        db.close()

    for kind, count in removed.items():
        print(f"Purged {count} {kind} comments")


if __name__ == "__main__":
    main()
