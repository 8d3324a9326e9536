"""
Schema migrations.

Migrations are applied in list order. Names of applied migrations are kept
in the ``migrations`` table; each pending migration runs in its own
transaction together with the insert of its record, so a failure leaves
neither the schema change nor the record behind (where the database
supports transactional DDL).
"""
import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from sqlalchemy import Connection, delete, inspect, select

from .config import Settings
from .database import Database
from .logging_setup import setup_logging
from .models import Migration as MigrationRecord
from .models import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    name: str
    up: Callable[[Connection], None]
    down: Callable[[Connection], None]


def _create_tasks_table(conn: Connection) -> None:
    Task.__table__.create(conn, checkfirst=True)


def _drop_tasks_table(conn: Connection) -> None:
    Task.__table__.drop(conn, checkfirst=True)


MIGRATIONS: List[Migration] = [
    Migration("001_create_tasks_table", _create_tasks_table, _drop_tasks_table),
]


def ensure_migrations_table(database: Database) -> None:
    if not inspect(database.engine).has_table(MigrationRecord.__tablename__):
        logger.info("Creating migrations table...")
        MigrationRecord.__table__.create(database.engine, checkfirst=True)


def applied_migrations(database: Database) -> List[str]:
    ensure_migrations_table(database)
    with database.engine.connect() as conn:
        rows = conn.execute(
            select(MigrationRecord.name).order_by(MigrationRecord.run_at, MigrationRecord.id)
        )
        return [row.name for row in rows]


def run_migrations(database: Database, migrations: Optional[Sequence[Migration]] = None) -> List[str]:
    """Apply pending migrations and return the names that were run."""
    migrations = MIGRATIONS if migrations is None else migrations
    logger.info("Starting migration process...")

    done = set(applied_migrations(database))
    pending = [m for m in migrations if m.name not in done]
    if not pending:
        logger.info("No pending migrations to run")
        return []

    logger.info("Found %s pending migrations", len(pending))
    ran = []
    for migration in pending:
        logger.info("Running migration: %s", migration.name)
        try:
            with database.engine.begin() as conn:
                migration.up(conn)
                conn.execute(MigrationRecord.__table__.insert().values(name=migration.name))
        except Exception:
            logger.exception("Migration %s failed", migration.name)
            raise
        logger.info("Successfully completed migration: %s", migration.name)
        ran.append(migration.name)

    logger.info("All migrations completed successfully")
    return ran


def rollback_last(database: Database, migrations: Optional[Sequence[Migration]] = None) -> Optional[str]:
    """Revert the most recently applied migration, if any."""
    migrations = MIGRATIONS if migrations is None else migrations
    by_name = {m.name: m for m in migrations}

    done = applied_migrations(database)
    if not done:
        logger.info("No migrations to roll back")
        return None

    name = done[-1]
    if name not in by_name:
        raise LookupError(f"Unknown migration recorded: {name}")

    logger.info("Rolling back migration: %s", name)
    with database.engine.begin() as conn:
        by_name[name].down(conn)
        conn.execute(delete(MigrationRecord.__table__).where(MigrationRecord.__table__.c.name == name))
    logger.info("Rolled back migration: %s", name)
    return name


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="task-api-migrate", description="Apply or revert schema migrations.")
    parser.add_argument("direction", nargs="?", choices=("up", "down"), default="up")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    database = Database.from_settings(settings)
    try:
        database.connect()
        if args.direction == "up":
            run_migrations(database)
        else:
            rollback_last(database)
    except Exception:
        logger.exception("Migration process failed")
        return 1
    finally:
        database.dispose()
    logger.info("Migrations completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
