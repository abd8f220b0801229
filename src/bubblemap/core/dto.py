from dataclasses import dataclass, replace
from typing import Any, Optional


@dataclass(frozen=True)
class RawTransfer:
    amount_usd: Any                 # as reported upstream; only real numbers count
    sender_address: Optional[str]
    receiver_address: Optional[str]


@dataclass(frozen=True)
class TransferQuery:
    since: str                      # ISO date, e.g. 2025-09-24
    currency: str
    receiver: str
    limit: int
    offset: int = 0

    def at_offset(self, offset: int) -> "TransferQuery":
        return replace(self, offset=offset)

    def variables(self) -> dict:
        return {
            "since": self.since,
            "currency": self.currency,
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass(frozen=True)
class RetryPolicy:
    timeout_sec: float
    max_attempts: int
    backoff_base_sec: float

    def __post_init__(self) -> None:
        if self.timeout_sec <= 0:
            raise ValueError("timeout_sec must be > 0")
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.backoff_base_sec < 0:
            raise ValueError("backoff_base_sec must be >= 0")
