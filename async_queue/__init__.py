from .queue import AsyncQueue
from .errors import (
    QueueError,
    InvalidCapacity,
    QueueEmpty,
    QueueTimeout,
    QueueAborted,
    QueueCleared,
    QueueClosed,
)
from .deferred import Deferred
from .duration import Duration, to_seconds
from .logger import ConsoleLogger
from .metrics import MetricsRegistry, QueueMetrics
