# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first admin user.

Run once after the initial migration:
    python bin/seed_admin.py

Reads FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD from the environment or
etc/app.conf.  After the row is inserted those values are no longer used.
"""

import os
import sys

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.config import settings          # noqa: E402
from core.logger import logger            # noqa: E402
from core.security import hash_password   # noqa: E402
from database import SessionLocal         # noqa: E402
from models.user import User              # noqa: E402


def seed() -> bool:
    """Return True if an admin row was inserted."""
    if not settings.first_admin_email or not settings.first_admin_password:
        logger.warning("FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set – nothing to seed")
        return False

    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == settings.first_admin_email).first():
            logger.info("Admin %s already exists – skipping", settings.first_admin_email)
            return False

        db.add(User(
            email=settings.first_admin_email,
            password=hash_password(settings.first_admin_password),
            name="Administrator",
            role="admin",
            status="active",
        ))
        db.commit()
        logger.info("Admin %s created", settings.first_admin_email)
        return True
    finally:
        db.close()


if __name__ == "__main__":
    seed()
