from typing import Any, Dict, List, Type

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import Base

_ON_CONFLICT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def insert_if_absent(
    db: Session,
    model: Type[Base],
    values: Dict[str, Any],
    conflict_columns: List[str],
) -> bool:
    """
    Atomically insert a row unless one already exists for the unique key.

    The existence check and the insert happen in a single statement on dialects
    that support ``ON CONFLICT DO NOTHING``; elsewhere the insert runs inside a
    savepoint and a unique violation is treated as "already present".

    The caller owns the surrounding transaction and must commit.

    Returns:
        True if a row was inserted, False if one already existed
    """
    dialect_insert = _ON_CONFLICT_INSERTS.get(db.get_bind().dialect.name)

    if dialect_insert is not None:
        stmt = (
            dialect_insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=conflict_columns)
        )
        result = db.execute(stmt)
        return result.rowcount == 1

    try:
        with db.begin_nested():
            db.execute(insert(model).values(**values))
        return True
    except IntegrityError:
        return False
