from __future__ import annotations
import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Deferred(Generic[T]):
    """Write-once cell that suspended callers can await.

    Must be created while an event loop is running; the underlying future is
    bound to that loop.
    """

    def __init__(self) -> None:
        self._f: asyncio.Future[T] = asyncio.get_running_loop().create_future()

    @property
    def future(self) -> asyncio.Future[T]:
        return self._f

    def done(self) -> bool:
        return self._f.done()

    def succeeded(self) -> bool:
        return self._f.done() and not self._f.cancelled() and self._f.exception() is None

    def result(self) -> T:
        return self._f.result()

    def try_succeed(self, value: T) -> bool:
        if self._f.done():
            return False
        self._f.set_result(value)
        return True

    def succeed(self, value: T) -> None:
        if not self.try_succeed(value):
            raise RuntimeError("Deferred already completed")

    def try_fail(self, ex: BaseException) -> bool:
        if self._f.done():
            return False
        self._f.set_exception(ex)
        return True

    def cancel(self, msg: Optional[str] = None) -> bool:
        return self._f.cancel(msg)
