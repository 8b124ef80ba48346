"""Data layer error hierarchy.

Every ``DatabaseError`` that reaches the dispatcher becomes a 500 response
carrying ``str(exc)``. Nothing here is retried.
"""

from wren.errors import WrenError


class DatabaseError(WrenError):
    """Base for all wren.data errors."""


class DriverNotInstalledError(DatabaseError):
    """Raised when the required database driver is not installed."""


class PoolAcquisitionError(DatabaseError):
    """Raised when a pooled connection cannot be obtained."""


class PoolTimeoutError(PoolAcquisitionError):
    """Raised when no pool slot frees up within the acquire timeout."""


class QueryError(DatabaseError):
    """Raised when a SQL query fails or returns an unexpected shape."""
