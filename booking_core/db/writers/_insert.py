"""
Portable INSERT ... ON CONFLICT DO NOTHING.

Used for lazily created singleton rows (calendar locks, rewards accounts),
where two transactions may race to create the same row and the loser should
simply go on to lock the winner's row.
"""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection


def insert_ignore(
    conn: Connection,
    table: type,
    values: dict[str, Any],
    conflict_columns: list[str],
) -> None:
    """
    Insert one row unless a row with the same conflict key exists.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., PropertyCalendar)
        values: Column values of the new row
        conflict_columns: Unique columns that identify an existing row

    Example:
        >>> with engine.begin() as conn:
        ...     insert_ignore(conn, PropertyCalendar, {"property_id": 7}, ["property_id"])
    """
    dialect = conn.dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(table).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(**values)
    else:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}")

    conn.execute(stmt.on_conflict_do_nothing(index_elements=conflict_columns))
