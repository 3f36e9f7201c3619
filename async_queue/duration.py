from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Duration:
    seconds: float

    @staticmethod
    def millis(ms: float) -> "Duration":
        return Duration(float(ms) / 1000.0)

    def __str__(self) -> str:
        s = self.seconds
        if s < 1.0:
            return f"{int(s*1000)}ms"
        if s < 60.0:
            return f"{s:.3f}s"
        m = int(s // 60)
        rem = s - m * 60
        return f"{m}m{rem:.3f}s"


Timeout = Union[float, int, Duration, None]


def to_seconds(timeout: Timeout) -> Optional[float]:
    """Normalise a timeout argument to seconds; ``None`` means wait forever."""
    if timeout is None:
        return None
    if isinstance(timeout, Duration):
        return max(0.0, timeout.seconds)
    return max(0.0, float(timeout))
