"""
Database initialization script.
Creates all tables defined in models.
Run this ONCE before first use.

Usage:
    python -m Database.init_db            # create tables
    python -m Database.init_db --check    # report table status
    python -m Database.init_db --drop     # drop everything (asks first)
"""

import argparse
import logging

from sqlalchemy import inspect

from Database.base import DatabaseManager
from Database.DatabaseConfig import get_config

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    'applications',
    'alerts',
    'agent_runs',
]


def check_tables_exist(db: DatabaseManager) -> dict:
    """
    Check which tables currently exist in database.

    Returns:
        dict: Table existence status
    """
    existing_tables = inspect(db.engine).get_table_names()

    status = {}
    for table in REQUIRED_TABLES:
        exists = table in existing_tables
        status[table] = exists
        logger.info(f"Table '{table}': {'✓ EXISTS' if exists else '✗ MISSING'}")

    return status


def create_all_tables(db: DatabaseManager) -> bool:
    """
    Create all tables from models.
    Safe to run multiple times (won't recreate existing tables).
    """
    logger.info("Creating database tables...")
    db.create_all()

    logger.info("Verifying tables...")
    missing = [table for table, exists in check_tables_exist(db).items() if not exists]
    if missing:
        logger.error(f"✗ Tables still missing: {missing}")
        return False

    logger.info("✓ All required tables are present!")
    return True


def drop_all_tables(db: DatabaseManager):
    """
    WARNING: Drops ALL tables (use only for testing/reset).
    """
    logger.warning("⚠️  Dropping all tables...")
    db.drop_all()
    logger.info("✓ All tables dropped")


def main(argv=None):
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Manage ChainGuardia database tables")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--check", action="store_true", help="Only report table status")
    group.add_argument("--drop", action="store_true", help="Drop all tables (asks for confirmation)")
    args = parser.parse_args(argv)

    db = DatabaseManager.from_config(get_config())

    if args.drop:
        confirm = input("⚠️  This will DELETE ALL DATA. Type 'yes' to confirm: ")
        if confirm.lower() == 'yes':
            drop_all_tables(db)
        else:
            logger.info("Cancelled")
        return 0

    if args.check:
        logger.info("Checking database tables...")
        check_tables_exist(db)
        return 0

    logger.info("Initializing database...")
    return 0 if create_all_tables(db) else 1


if __name__ == "__main__":
    raise SystemExit(main())
