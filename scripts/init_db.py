"""Initialize the viewer credential store.

Creates the users table and the default admin account (admin / 1234).
Running it again leaves existing accounts untouched.

Usage:
    python scripts/init_db.py

"""

from __future__ import annotations

import logging
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ui.database import crud
from ui.database.db import db_session, default_db_path


logger = logging.getLogger("init_db")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with db_session() as conn:
        created = crud.ensure_default_admin(conn)

    if created:
        logger.info(
            "Database initialized at %s. User: %s, Pass: %s",
            default_db_path(),
            crud.DEFAULT_ADMIN_USERNAME,
            crud.DEFAULT_ADMIN_PASSWORD,
        )
    else:
        logger.info("Database at %s already has user %s", default_db_path(), crud.DEFAULT_ADMIN_USERNAME)
    return 0


if __name__ == "__main__":
    sys.exit(main())
