# backend/plantdb/alembic/env.py
#
# Run from backend/ with `alembic upgrade head`. The target database is the
# application's write engine, so DATABASE_WRITE_URL / DATABASE_URL decide
# where migrations go; alembic.ini only carries logging settings.

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# backend/ must be importable before the plantdb package is loaded.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from plantdb.database import Base, WRITE_DB_URL, write_engine  # noqa: E402
from plantdb.apps.accounts import models as accounts_models  # noqa: F401, E402
from plantdb.apps.master_data import models as master_data_models  # noqa: F401, E402
from plantdb.apps.maintenance_plans import models as maintenance_plans_models  # noqa: F401, E402
from plantdb.apps.notifications import models as notifications_models  # noqa: F401, E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Render SQL for the configured database without connecting."""
    context.configure(
        url=WRITE_DB_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with write_engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
