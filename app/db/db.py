from typing import Optional

from sqlalchemy.engine import Engine

from .models import Base
from .session import engine as default_engine, enable_sqlite_foreign_keys

from app.utils.logging import get_logger

logger = get_logger()


def create_tables(bind: Optional[Engine] = None) -> Engine:
    """Create every table on ``bind`` (the application engine by default)."""
    target = bind if bind is not None else default_engine
    if bind is not None:
        enable_sqlite_foreign_keys(target)
    Base.metadata.create_all(target)
    logger.info(
        "Database schema ready",
        dialect=target.dialect.name,
        tables=sorted(Base.metadata.tables),
    )
    return target


def drop_tables(bind: Optional[Engine] = None):
    target = bind if bind is not None else default_engine
    Base.metadata.drop_all(target)
    logger.info("Dropped all tables", dialect=target.dialect.name)


def reset_db(bind: Optional[Engine] = None):
    logger.warning("Resetting database, all tracked files will be lost")
    drop_tables(bind)
    create_tables(bind)


if __name__ == "__main__":
    reset_db()
