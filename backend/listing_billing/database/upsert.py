"""
Dialect-aware INSERT ... ON CONFLICT support.

Idempotent writes (ledger entries, subscription upserts, rate-limit
counters) must be a single statement so concurrent requests serialize in the
database, not in application code.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: Session, table):
    """
    Return an insert() construct that supports on_conflict_* for the
    session's database.

    Raises:
        NotImplementedError: for dialects without ON CONFLICT support
    """
    dialect_name = session.get_bind().dialect.name
    insert_fn = _INSERT_BY_DIALECT.get(dialect_name)
    if insert_fn is None:
        raise NotImplementedError(f"Upsert is not supported for dialect '{dialect_name}'")
    return insert_fn(table)
