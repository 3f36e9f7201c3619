from __future__ import annotations
import asyncio
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, Generic, Iterable, Optional, TypeVar

from .deferred import Deferred
from .duration import Timeout, to_seconds
from .errors import InvalidCapacity, QueueAborted, QueueCleared, QueueClosed, QueueEmpty, QueueTimeout
from .logger import ConsoleLogger
from .metrics import MetricsRegistry, QueueMetrics

T = TypeVar("T")

Hook = Optional[Callable[[Any], Any]]


class _Putter(Generic[T]):
    __slots__ = ("item", "deferred")

    def __init__(self, item: T):
        self.item = item
        self.deferred: Deferred[None] = Deferred()


class AsyncQueue(Generic[T]):
    """FIFO queue shared by producer and consumer tasks.

    Producers block in ``add`` while the queue holds ``capacity`` items and
    consumers block in ``take`` while it is empty. Blocked callers are served
    in the order they arrived. ``clear()`` and ``close()`` abort every blocked
    caller at once.

    All state changes happen on the event loop without yielding in between,
    so the loop itself serialises them.

    Hooks run synchronously inside the operation that moved the item. An
    exception raised by a hook is logged at ERROR and not re-raised; the
    operation still succeeds. If a take is cancelled after an item was already
    handed to it, the item goes back to the queue and is handed out again, so
    ``on_remove`` and the removed counter see that item twice.

    Args:
        capacity: Maximum number of buffered items (``None`` = unbounded)
        on_add: Called with each item after it enters the queue; errors are
            logged, not raised
        on_remove: Called with each item after it leaves the queue; errors
            are logged, not raised
        name: Used in log records and metric labels
        logger: Logger to bind; defaults to a WARN-level ConsoleLogger
        metrics: Registry that receives per-queue counters and gauges

    Example:
        ```python
        q = AsyncQueue[int](capacity=2)

        # Producer
        await q.add(1, timeout=Duration.millis(100))

        # Consumer
        item = await q.take()

        # Teardown
        q.close(); q.clear()
        ```
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        *,
        on_add: Hook = None,
        on_remove: Hook = None,
        name: str = "queue",
        logger: Optional[ConsoleLogger] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        if capacity is not None and (isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0):
            raise InvalidCapacity(capacity)
        self._capacity = capacity
        self._buf: Deque[T] = deque()
        self._getters: Deque[Deferred[T]] = deque()
        self._putters: Deque[_Putter[T]] = deque()
        self._drained: Optional[Deferred[None]] = None
        self._closed = False
        self.on_add = on_add
        self.on_remove = on_remove
        self.name = name
        self._log = (logger or ConsoleLogger(level="WARN")).bind(queue=name)
        self._metrics = QueueMetrics(metrics, name) if metrics is not None else None

    @property
    def capacity(self) -> Optional[int]:
        return self._capacity

    @property
    def length(self) -> int:
        return len(self._buf)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_full(self) -> bool:
        return self._capacity is not None and len(self._buf) >= self._capacity

    @property
    def is_empty(self) -> bool:
        return not self._buf

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        return f"AsyncQueue(name={self.name!r}, length={len(self._buf)}, capacity={self._capacity}, closed={self._closed})"

    async def add(self, item: T, timeout: Timeout = None) -> None:
        """Append ``item``, waiting for room while the queue is full.

        Raises:
            QueueClosed: If the queue is closed, or closes while waiting
            QueueCleared: If the queue is cleared while waiting
            QueueTimeout: If no room was made within ``timeout``; the item
                is not enqueued

        As with ``asyncio.Queue``, cancelling the calling task does not undo
        an insert that already happened: once a take has released this
        caller its item is in the queue, even if the cancellation is
        delivered before ``add`` returns.
        """
        if self._closed:
            raise QueueClosed("add on closed queue")
        if not self.is_full:
            self._enqueue(item)
            return
        putter: _Putter[T] = _Putter(item)
        self._putters.append(putter)
        self._log.debug("add waiting for room", producers=len(self._putters))
        await self._suspend("add", self._putters, putter, putter.deferred, timeout)

    async def add_all(self, items: Iterable[T]) -> None:
        # Not atomic: items added before a failure stay queued.
        for item in items:
            await self.add(item)

    async def take(self, timeout: Timeout = None) -> T:
        """Remove and return the head item, waiting while the queue is empty.

        Raises:
            QueueClosed: If the queue is closed, or closes while waiting
            QueueCleared: If the queue is cleared while waiting
            QueueTimeout: If no item arrived within ``timeout``
        """
        if self._closed:
            raise QueueClosed("take on closed queue")
        if self._buf:
            return self._dequeue()
        getter: Deferred[T] = Deferred()
        self._getters.append(getter)
        self._log.debug("take waiting for item", consumers=len(self._getters))
        return await self._suspend("take", self._getters, getter, getter, timeout)

    def peek(self) -> T:
        if self._closed:
            raise QueueClosed("peek on closed queue")
        if not self._buf:
            raise QueueEmpty("peek on empty queue")
        return self._buf[0]

    async def wait(self) -> None:
        """Wait until every buffered item has been taken.

        Returns at once if the queue is already empty. Concurrent callers
        share one completion; cancelling one of them leaves the others
        waiting.
        """
        if not self._buf:
            return
        if self._closed:
            raise QueueClosed("wait on closed queue")
        if self._drained is None:
            self._drained = Deferred()
        await asyncio.shield(self._drained.future)

    def clear(self) -> None:
        """Drop buffered items and abort all blocked callers with QueueCleared."""
        dropped = len(self._buf)
        self._buf.clear()
        self._observe_length()
        aborted = self._abort(QueueCleared, "queue was cleared")
        if dropped or aborted:
            self._log.info("cleared", dropped=dropped, aborted=aborted)

    def close(self) -> None:
        """Refuse further operations and abort all blocked callers with QueueClosed.

        Buffered items are kept until ``clear()``.
        """
        if self._closed:
            return
        self._closed = True
        aborted = self._abort(QueueClosed, "queue was closed")
        self._log.info("closed", buffered=len(self._buf), aborted=aborted)

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.take()
        except QueueClosed:
            raise StopAsyncIteration from None

    def _enqueue(self, item: T) -> None:
        self._buf.append(item)
        self._added(item)
        self._serve_getters()

    def _serve_getters(self) -> None:
        while self._getters and self._buf:
            getter = self._getters.popleft()
            if getter.done():
                continue
            head = self._buf.popleft()
            self._removed(head)
            getter.succeed(head)
            self._log.debug("handed off to waiting take", consumers=len(self._getters))
        self._check_drained()

    def _dequeue(self) -> T:
        item = self._buf.popleft()
        self._removed(item)
        while self._putters and not self.is_full:
            putter = self._putters.popleft()
            if putter.deferred.done():
                continue
            self._buf.append(putter.item)
            self._added(putter.item)
            putter.deferred.succeed(None)
            self._log.debug("released waiting add", producers=len(self._putters))
        self._check_drained()
        return item

    def _check_drained(self) -> None:
        if not self._buf and self._drained is not None:
            drained, self._drained = self._drained, None
            drained.try_succeed(None)

    async def _suspend(self, op: str, waiters: Deque[Any], entry: Any, handle: Deferred[Any], timeout: Timeout) -> Any:
        seconds = to_seconds(timeout)
        try:
            await asyncio.wait((handle.future,), timeout=seconds)
        except asyncio.CancelledError:
            if not self._forget(waiters, entry) and handle.done() and not handle.future.cancelled():
                if handle.succeeded():
                    if op == "take":
                        self._give_back(handle.result())
                else:
                    handle.future.exception()  # aborted meanwhile; mark retrieved
            raise
        if not handle.done():
            # Still registered: nothing served this caller before the deadline.
            self._forget(waiters, entry)
            handle.cancel()
            if self._metrics: self._metrics.timeouts.inc()
            self._log.debug(f"{op} timed out", timeout=seconds)
            raise QueueTimeout(op, seconds or 0.0)
        return handle.result()

    @staticmethod
    def _forget(waiters: Deque[Any], entry: Any) -> bool:
        try:
            waiters.remove(entry)
        except ValueError:
            return False
        return True

    def _give_back(self, item: T) -> None:
        # A take was cancelled after an item had been handed to it.
        self._log.debug("returning item from cancelled take")
        self._buf.appendleft(item)
        self._observe_length()
        self._serve_getters()

    def _abort(self, exc: type[QueueAborted], msg: str) -> int:
        handles: list[Deferred[Any]] = list(self._getters)
        handles.extend(p.deferred for p in self._putters)
        self._getters.clear()
        self._putters.clear()
        if self._drained is not None:
            handles.append(self._drained)
            self._drained = None
        aborted = sum(1 for h in handles if h.try_fail(exc(msg)))
        if aborted and self._metrics:
            self._metrics.aborted.inc(aborted)
        return aborted

    def _added(self, item: T) -> None:
        if self._metrics:
            self._metrics.added.inc()
        self._observe_length()
        self._call_hook(self.on_add, "on_add", item)

    def _removed(self, item: T) -> None:
        if self._metrics:
            self._metrics.removed.inc()
        self._observe_length()
        self._call_hook(self.on_remove, "on_remove", item)

    def _observe_length(self) -> None:
        if self._metrics:
            self._metrics.observe_length(len(self._buf))

    def _call_hook(self, hook: Hook, label: str, item: T) -> None:
        if hook is None:
            return
        try:
            hook(item)
        except Exception as ex:
            # Hook failures never reach queue state or the calling operation.
            self._log.error(f"{label} hook failed", error=repr(ex))
