"""
Plain-SQL schema migrations.

Scripts live in ``docqa/db/scripts`` and run in file-name order on every start,
so each one has to be idempotent (``CREATE ... IF NOT EXISTS``).
"""
import os
from typing import List

from sqlalchemy.engine import Engine

from . import engine
from ..logging_config import logger

SCRIPTS_DIR = os.path.join(os.path.dirname(__file__), "scripts")


def migration_files(directory: str = SCRIPTS_DIR) -> List[str]:
    """Absolute paths of the .sql scripts, sorted by their numeric prefix."""
    if not os.path.isdir(directory):
        logger.warning("Migrations directory not found", path=directory)
        return []
    return [
        os.path.join(directory, name)
        for name in sorted(os.listdir(directory))
        if name.endswith(".sql")
    ]


def run_sql_migrations(target: Engine = None, directory: str = SCRIPTS_DIR) -> int:
    """
    Apply every script in one transaction.

    Returns:
        Number of scripts executed
    """
    target = target if target is not None else engine
    paths = migration_files(directory)
    if not paths:
        logger.info("No migration files found", path=directory)
        return 0

    with target.begin() as conn:
        for path in paths:
            name = os.path.basename(path)
            with open(path, "r", encoding="utf-8") as f:
                conn.exec_driver_sql(f.read())
            logger.info("Applied migration", file=name)

    logger.info("Migrations applied", count=len(paths))
    return len(paths)
