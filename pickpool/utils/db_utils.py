"""
Database helpers shared by the repository and pick service
"""

from sqlalchemy.dialects import postgresql, sqlite

from pickpool import db

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(table):
    """Return an INSERT construct supporting ON CONFLICT for the bound engine"""
    dialect = db.engine.dialect.name
    try:
        insert = _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise RuntimeError(
            f"Conflict-aware inserts are not supported on '{dialect}'"
        ) from None
    return insert(table)
