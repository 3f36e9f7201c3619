from __future__ import annotations

from .duration import Duration


class QueueError(Exception):
    pass


class InvalidCapacity(QueueError, ValueError):
    def __init__(self, capacity: object):
        super().__init__(f"capacity must be greater than 0, got {capacity!r}")
        self.capacity = capacity


class QueueEmpty(QueueError):
    pass


class QueueTimeout(QueueError, TimeoutError):
    def __init__(self, op: str, seconds: float):
        super().__init__(f"{op} timed out after {Duration(seconds)}")
        self.op = op
        self.seconds = seconds


class QueueAborted(QueueError):
    """A suspended operation was aborted by ``clear()`` or ``close()``."""


class QueueCleared(QueueAborted):
    pass


class QueueClosed(QueueAborted):
    pass
