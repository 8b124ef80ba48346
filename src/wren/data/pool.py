"""Bounded async connection pool.

A ``Pool`` hands out connections through ``acquire()``, an async context
manager. At most ``max_size`` connections are leased at once; further
callers wait in FIFO order on an ``anyio.Semaphore`` until a slot frees
up or ``acquire_timeout`` elapses.

Release happens in a ``finally`` block inside a shielded cancel scope, so
a handle goes back to the pool on every exit path, including task
cancellation. A connection whose lease ended with an exception is closed
rather than reused.

The pool is driver-agnostic: it is built from a ``connector`` coroutine
function that opens one connection and a ``closer`` that closes one.
"""

import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import anyio

from wren.data.errors import DatabaseError, PoolAcquisitionError, PoolTimeoutError

logger = logging.getLogger("wren.data")


async def _noop_close(conn: object) -> None:
    return None


class Pool[C]:
    """A bounded pool of connections of type ``C``.

    Usage::

        pool = Pool(open_conn, max_size=10, acquire_timeout=30.0, closer=close_conn)

        async with pool.acquire() as conn:
            await conn.execute("SELECT 1")

    ``size`` counts open connections (idle plus leased), ``in_use`` counts
    leased ones and ``idle`` counts the ones waiting for reuse.
    """

    __slots__ = (
        "_acquire_timeout",
        "_closed",
        "_closer",
        "_connector",
        "_idle",
        "_in_use",
        "_max_size",
        "_size",
        "_slots",
    )

    def __init__(
        self,
        connector: Callable[[], Awaitable[C]],
        *,
        max_size: int = 10,
        acquire_timeout: float = 30.0,
        closer: Callable[[C], Awaitable[None]] | None = None,
    ) -> None:
        if max_size < 1:
            msg = f"Pool max_size must be at least 1, got {max_size}"
            raise ValueError(msg)
        self._connector = connector
        self._closer = closer or _noop_close
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._slots = anyio.Semaphore(max_size)
        self._idle: deque[C] = deque()
        self._size = 0
        self._in_use = 0
        self._closed = False

    # -- Observability --

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def size(self) -> int:
        return self._size

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def idle(self) -> int:
        return len(self._idle)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- Leasing --

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[C]:
        """Lease a connection for the duration of the ``async with`` block.

        Raises ``PoolTimeoutError`` if no slot frees up within the acquire
        timeout and ``PoolAcquisitionError`` if a new connection cannot be
        opened or the pool is closed.
        """
        if self._closed:
            msg = "Connection pool is closed"
            raise PoolAcquisitionError(msg)

        try:
            with anyio.fail_after(self._acquire_timeout):
                await self._slots.acquire()
        except TimeoutError:
            msg = (
                f"Timed out after {self._acquire_timeout}s waiting for a database "
                f"connection ({self._in_use}/{self._max_size} in use)"
            )
            raise PoolTimeoutError(msg) from None

        try:
            conn = await self._checkout()
        except BaseException:
            self._slots.release()
            raise

        failed = True
        try:
            yield conn
            failed = False
        finally:
            with anyio.CancelScope(shield=True):
                await self._checkin(conn, discard=failed)

    async def _checkout(self) -> C:
        if self._idle:
            conn = self._idle.pop()
        else:
            try:
                conn = await self._connector()
            except DatabaseError:
                raise
            except Exception as exc:
                raise PoolAcquisitionError(str(exc)) from exc
            self._size += 1
            logger.debug("pool opened connection (%d/%d)", self._size, self._max_size)
        self._in_use += 1
        logger.debug("pool acquire (%d in use)", self._in_use)
        return conn

    async def _checkin(self, conn: C, *, discard: bool) -> None:
        self._in_use -= 1
        try:
            if discard or self._closed:
                self._size -= 1
                await self._close_quietly(conn)
                logger.debug("pool discarded connection (%d open)", self._size)
            else:
                self._idle.append(conn)
                logger.debug("pool release (%d in use)", self._in_use)
        finally:
            self._slots.release()

    async def _close_quietly(self, conn: C) -> None:
        try:
            await self._closer(conn)
        except Exception:
            logger.warning("error while closing pooled connection", exc_info=True)

    # -- Lifecycle --

    async def close(self) -> None:
        """Close idle connections and refuse further acquires.

        Connections still leased are closed when they are released.
        """
        self._closed = True
        while self._idle:
            conn = self._idle.pop()
            self._size -= 1
            await self._close_quietly(conn)
