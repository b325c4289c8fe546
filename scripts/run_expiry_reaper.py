"""
Delete pending leave requests whose date has passed.

Intended to run from cron (e.g. every 15 minutes). The hostel directory
implementation is loaded from ``--directory module:callable``; the
callable must return a StudentDirectory.

    python scripts/run_expiry_reaper.py --directory myhostel.directory:build_directory
"""

import argparse
import importlib
import sys
from typing import Callable

from hostel_outing.core.config import settings
from hostel_outing.core.logging import get_logger, setup_logging
from hostel_outing.db import init_db
from hostel_outing.db.session import SessionLocal, engine
from hostel_outing.services.base.collaborators import StudentDirectory
from hostel_outing.services.base.service_factory import OutingServiceFactory


def load_directory(target: str) -> StudentDirectory:
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Expected module:callable, got {target!r}")
    build: Callable[[], StudentDirectory] = getattr(importlib.import_module(module_name), attr)
    return build()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--directory", required=True, help="module:callable returning a StudentDirectory")
    parser.add_argument("--dry-run", action="store_true", help="List expired requests without deleting them")
    args = parser.parse_args()

    setup_logging()
    logger = get_logger("run_expiry_reaper")
    init_db(engine)

    directory = load_directory(args.directory)
    db = SessionLocal()
    factory = OutingServiceFactory(db, directory, session_factory=SessionLocal, settings=settings)
    try:
        expiry = factory.expiry()
        if args.dry_run:
            expired = expiry.find_expired()
            for request in expired:
                print(f"{request.id}\t{request.application_type.value}\t{request.status.value}\t{request.student_id}")
            print(f"{len(expired)} expired request(s)")
            return 0

        result = expiry.run_expiry_reaper()
        if not result.is_success:
            logger.error(f"Expiry reaper failed: {result.message}")
            return 1
        print(result.message)
        return 0
    finally:
        factory.close()
        db.close()


if __name__ == "__main__":
    sys.exit(main())
