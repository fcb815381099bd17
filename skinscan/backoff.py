"""BackoffPolicy — delay between status polls of a remote job."""
from dataclasses import dataclass

from skinscan.constants import BACKOFF_CAP_SECONDS, BACKOFF_FACTOR, BACKOFF_INITIAL_SECONDS


@dataclass(frozen=True)
class BackoffPolicy:
    initial: float = BACKOFF_INITIAL_SECONDS
    factor: float = BACKOFF_FACTOR
    cap: float = BACKOFF_CAP_SECONDS

    def next_delay(self, attempt: int) -> float:
        """Delay before poll number ``attempt + 1``. Non-decreasing, never above ``cap``."""
        match attempt:
            case int() as n if n >= 0:
                pass
            case _:
                raise ValueError(f"attempt must be a non-negative int, got {attempt!r}")
        delay = self.initial
        for _ in range(attempt):
            delay *= self.factor
            if delay >= self.cap:
                return self.cap
        return min(delay, self.cap)
