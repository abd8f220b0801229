from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from bubblemap.config import settings
from bubblemap.core.dto import RetryPolicy


EdgeKey = Tuple[str, str]     # (sender, receiver)


# Configuration model

@dataclass(frozen=True)
class PipelineConfig:
    """
    Run configuration for one bubblemap build. Defaults come from settings.
    """

    page_size: int = settings.BITQUERY_PAGE_SIZE
    timeout_sec: float = settings.BITQUERY_TIMEOUT_SEC
    max_attempts: int = settings.BITQUERY_MAX_RETRIES
    backoff_base_sec: float = settings.BITQUERY_BACKOFF_SEC
    inter_page_sleep_sec: float = settings.INTER_PAGE_SLEEP_SEC
    max_pages: int = settings.MAX_PAGES         # 0 = unlimited
    node_cap: int = settings.NODE_CAP
    edge_cap: int = settings.EDGE_CAP

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError("page_size must be > 0")
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.timeout_sec <= 0:
            raise ValueError("timeout_sec must be > 0")
        if self.backoff_base_sec < 0 or self.inter_page_sleep_sec < 0:
            raise ValueError("backoff_base_sec and inter_page_sleep_sec must be >= 0")
        if self.max_pages < 0:
            raise ValueError("max_pages must be >= 0")
        if self.node_cap < 0 or self.edge_cap < 0:
            raise ValueError("node_cap and edge_cap must be >= 0")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            timeout_sec=self.timeout_sec,
            max_attempts=self.max_attempts,
            backoff_base_sec=self.backoff_base_sec,
        )



# Running totals

@dataclass
class FlowAccumulator:
    """
    Per-run running totals. Owned by the pipeline driver, mutated only while
    pages are being folded, read once by the reducer.
    """

    node_value: Dict[str, Decimal] = field(default_factory=dict)
    edge_value: Dict[EdgeKey, Decimal] = field(default_factory=dict)
    edge_count: Dict[EdgeKey, int] = field(default_factory=dict)



# Graph models

@dataclass(frozen=True)
class Node:

    id: str
    label: str
    value: Decimal


@dataclass(frozen=True)
class Edge:

    source: str
    target: str
    value: Decimal
    count: int


@dataclass
class Graph:

    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)



# Pipeline state

class PipelineState(str, Enum):
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    STOPPED = "stopped"


class StopReason(str, Enum):
    EXHAUSTED = "exhausted"          # empty page
    MAX_PAGES = "max_pages"
    SHORT_PAGE = "short_page"        # fewer records than requested


@dataclass
class PipelineStats:
    pages: int = 0
    records: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    stop_reason: Optional[StopReason] = None
