import time
from typing import Callable


def backoff_delay(attempt: int, base: float) -> float:
    # attempt is 1-based; linear growth, no jitter, no cap
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return base * attempt


def backoff_sleep(attempt: int, base: float, sleep: Callable[[float], None] = time.sleep) -> float:
    t = backoff_delay(attempt, base)
    if t > 0:
        sleep(t)
    return t
