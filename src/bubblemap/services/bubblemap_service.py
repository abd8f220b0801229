from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from bubblemap.ports.transfer_source_port import TransferSourcePort
from bubblemap.core.dto import RawTransfer, TransferQuery
from bubblemap.core.models import (
    FlowAccumulator,
    Graph,
    PipelineConfig,
    PipelineState,
    PipelineStats,
    StopReason,
)
from bubblemap.services.aggregator import fold_page
from bubblemap.services.reducer import reduce_graph


logger = logging.getLogger(__name__)

ProgressFn = Callable[[str, Dict[str, Any]], None]


class BubbleMapService:
    """
    Builds a bounded bubble-map graph of the transfers into one receiver.

    - Paging: sequential, ascending offset, one fold per fetched page
    - Stops on: empty page, page shorter than the limit, page-count cap
    - Fetch failures are not caught here; a failed run returns nothing
    """

    def __init__(
        self,
        source: TransferSourcePort,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self._sleep = sleep
        self.last_stats: Optional[PipelineStats] = None

    def run(
        self,
        query: TransferQuery,
        cfg: PipelineConfig,
        on_progress: Optional[ProgressFn] = None,
    ) -> Graph:
        def emit(event: str, data: Dict[str, Any]) -> None:
            if on_progress:
                on_progress(event, data)

        self.last_stats = None
        acc = FlowAccumulator()
        stats = PipelineStats()
        limit = cfg.page_size
        paged = replace(query, limit=limit)
        offset = 0
        state = PipelineState.FETCHING
        page: List[RawTransfer] = []

        emit("start", {"currency": query.currency, "receiver": query.receiver, "since": query.since})
        logger.info("starting paging loop limit=%d max_pages=%d", limit, cfg.max_pages)

        while state is not PipelineState.STOPPED:
            if state is PipelineState.FETCHING:
                logger.debug("fetching page offset=%d limit=%d", offset, limit)
                page = self.source.fetch_page(paged.at_offset(offset))
                if not page:
                    logger.info("empty page at offset=%d, stopping", offset)
                    stats.stop_reason = StopReason.EXHAUSTED
                    state = PipelineState.STOPPED
                    continue
                state = PipelineState.AGGREGATING

            elif state is PipelineState.AGGREGATING:
                fold_page(page, acc)
                stats.pages += 1
                stats.records += len(page)
                logger.info(
                    "aggregated page %d: nodes=%d pairs=%d",
                    stats.pages, len(acc.node_value), len(acc.edge_value),
                )
                emit("page", {
                    "page": stats.pages,
                    "offset": offset,
                    "items": len(page),
                    "nodes": len(acc.node_value),
                    "pairs": len(acc.edge_value),
                })

                if cfg.max_pages > 0 and stats.pages >= cfg.max_pages:
                    logger.info("max_pages=%d reached, stopping", cfg.max_pages)
                    stats.stop_reason = StopReason.MAX_PAGES
                    state = PipelineState.STOPPED
                elif len(page) < limit:
                    logger.info("last page detected (%d < %d), stopping", len(page), limit)
                    stats.stop_reason = StopReason.SHORT_PAGE
                    state = PipelineState.STOPPED
                else:
                    offset += limit
                    if cfg.inter_page_sleep_sec > 0:
                        logger.debug("sleeping %.3fs before next page", cfg.inter_page_sleep_sec)
                        self._sleep(cfg.inter_page_sleep_sec)
                    state = PipelineState.FETCHING

        emit("stop", {"reason": stats.stop_reason.value, "pages": stats.pages})

        stats.total_nodes = len(acc.node_value)
        stats.total_edges = len(acc.edge_value)
        graph = reduce_graph(acc, cfg.node_cap, cfg.edge_cap)
        self.last_stats = stats

        logger.info(
            "built graph nodes=%d/%d links=%d/%d",
            len(graph.nodes), stats.total_nodes, len(graph.edges), stats.total_edges,
        )
        emit("done", {
            "pages": stats.pages,
            "records": stats.records,
            "nodes": len(graph.nodes),
            "edges": len(graph.edges),
            "total_nodes": stats.total_nodes,
            "total_edges": stats.total_edges,
        })
        return graph
