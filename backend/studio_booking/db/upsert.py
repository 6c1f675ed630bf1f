"""
Atomic insert-if-absent for rows guarded by a unique key.

A read-then-insert leaves a window where two concurrent webhook deliveries
both see "absent" and both insert. Pushing the check into the INSERT itself
(`ON CONFLICT DO NOTHING`) closes it: exactly one caller gets the new id
back, every other caller gets None and falls through to its update path.

Only PostgreSQL (production) and SQLite (tests) are supported.
"""

from typing import Any, Optional, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def _dialect_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"insert_if_absent is not supported on {dialect}")


async def insert_if_absent(
    db: AsyncSession,
    model: Any,
    values: dict,
    conflict_columns: Sequence[str],
) -> Optional[int]:
    """
    INSERT `values` into `model`'s table unless a row with the same
    `conflict_columns` exists. Returns the new primary key, or None when the
    row was already there.
    """
    insert = _dialect_insert(db)
    stmt = (
        insert(model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=list(conflict_columns))
        .returning(model.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
