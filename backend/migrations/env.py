# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Alembic environment – wires the migration engine to the database the
application uses.

The database URL comes from the application's Settings class (environment or
etc/app.conf), so there is a single source of truth for the connection
string.
"""

import os
import sys

# ``backend/`` must be importable for ``core.config`` and the models.
_BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from alembic import context  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402

from core.config import settings  # noqa: E402
from database import Base  # noqa: E402

# Import every ORM model so that Base.metadata knows about all tables.
# Without this, ``alembic revision --autogenerate`` cannot detect them.
import models.user          # noqa: F401, E402
import models.audit_log     # noqa: F401, E402
import models.conversation  # noqa: F401, E402


def run_migrations_online():
    connectable = create_engine(settings.database_url)
    with connectable.connect() as conn:
        context.configure(
            connection=conn,
            target_metadata=Base.metadata,
        )
        with context.begin_transaction():
            context.run_migrations()


def run_migrations_offline():
    """Generate SQL without a live connection."""
    context.configure(
        url=settings.database_url,
        target_metadata=Base.metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
