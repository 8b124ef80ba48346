"""Pooled async database access for wren.

SQL in, one checked value out. Not an ORM.

Basic usage::

    from wren.data import Database

    db = Database("sqlite:///app.db", pool_size=10)
    await db.connect()

    two = await db.fetch_val("SELECT 1 + 1", as_type=int)

Requires ``asyncpg`` for PostgreSQL::

    pip install wren[pg]
"""

from wren.data.database import Database
from wren.data.errors import (
    DatabaseError,
    DriverNotInstalledError,
    PoolAcquisitionError,
    PoolTimeoutError,
    QueryError,
)
from wren.data.pool import Pool

__all__ = [
    "Database",
    "DatabaseError",
    "DriverNotInstalledError",
    "Pool",
    "PoolAcquisitionError",
    "PoolTimeoutError",
    "QueryError",
]
