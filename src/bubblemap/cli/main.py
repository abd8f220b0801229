from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import time
import webbrowser
from pathlib import Path
from typing import List, Optional

from bubblemap.config import settings
from bubblemap.core.dto import TransferQuery
from bubblemap.core.errors import BubbleMapError
from bubblemap.core.models import PipelineConfig
from bubblemap.services.bubblemap_service import BubbleMapService
from bubblemap.io.output_writer import write_bubblemap_html, write_graph_json, write_summary_md

from bubblemap.adapters.bitquery.bitquery_transfer_adapter import BitqueryTransferAdapter
from bubblemap.adapters.static.static_transfer_adapter import StaticTransferAdapter


EXAMPLE = (
    "Example: bubblemap Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB "
    "CapuXNQoDviLvU1PxFiizLgPNQCxrsag1uMeyk6zLVps 2025-09-24"
)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bubblemap",
        description="Bubble map of the transfers into a Solana address (Bitquery)",
        epilog=EXAMPLE,
    )
    p.add_argument("currency", help="Token mint / currency address")
    p.add_argument("receiver", help="Receiver address")
    p.add_argument("since", nargs="?", default=settings.DEFAULT_SINCE, help="Transfer date (YYYY-MM-DD)")
    p.add_argument("--page-size", type=int, default=settings.BITQUERY_PAGE_SIZE, help="Transfers per request")
    p.add_argument("--timeout", type=float, default=settings.BITQUERY_TIMEOUT_SEC, help="Request timeout in seconds")
    p.add_argument("--retries", type=int, default=settings.BITQUERY_MAX_RETRIES, help="Attempts per page")
    p.add_argument("--backoff", type=float, default=settings.BITQUERY_BACKOFF_SEC, help="Linear backoff base in seconds")
    p.add_argument("--inter-page-sleep", type=float, default=settings.INTER_PAGE_SLEEP_SEC, help="Delay between pages in seconds")
    p.add_argument("--max-pages", type=int, default=settings.MAX_PAGES, help="Hard cap on pages fetched (0=unlimited)")
    p.add_argument("--node-cap", type=int, default=settings.NODE_CAP, help="Max nodes kept")
    p.add_argument("--edge-cap", type=int, default=settings.EDGE_CAP, help="Max links kept")
    p.add_argument("--out", default=settings.OUTPUT_DIR, help="Output folder")
    p.add_argument("--template", help="HTML template containing the bubblemap.json fetch line")
    p.add_argument("--records-file", help="Read transfers from a JSON file instead of Bitquery (dev/testing)")
    p.add_argument("--open", action="store_true", help="Open output.html in the browser when done")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def _validate(args: argparse.Namespace) -> Optional[str]:
    for name in ("currency", "receiver", "since"):
        value = (getattr(args, name) or "").strip()
        if not value:
            return f"{name} must not be empty"
        setattr(args, name, value)
    try:
        dt.date.fromisoformat(args.since)
    except ValueError:
        return f"since must be a YYYY-MM-DD date, got {args.since!r}"
    return None


def _make_progress_reporter():
    start_time = time.time()

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def progress(event: str, data: dict) -> None:
        if event == "start":
            print(f"[{_ts()}] Fetching transfers of {data['currency']} into {data['receiver']} on {data['since']}")
            return
        if event == "page":
            print(
                f"Page {data['page']} • offset {data['offset']} • "
                f"{data['items']} transfer(s) • {data['nodes']} nodes • {data['pairs']} pairs"
            )
            return
        if event == "stop":
            print(f"Stopped after {data['pages']} page(s): {data['reason']}")
            return
        if event == "done":
            elapsed = time.time() - start_time
            print(
                f"[{_ts()}] Done in {elapsed:.1f}s • "
                f"{data['nodes']}/{data['total_nodes']} nodes • {data['edges']}/{data['total_edges']} links"
            )
            return
        if event == "error":
            print(f"[{_ts()}] Error: {data.get('message', 'Unknown error')}", file=sys.stderr)

    return progress


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    problem = _validate(args)
    if problem:
        print(problem, file=sys.stderr)
        return 2

    try:
        cfg = PipelineConfig(
            page_size=args.page_size,
            timeout_sec=args.timeout,
            max_attempts=args.retries,
            backoff_base_sec=args.backoff,
            inter_page_sleep_sec=args.inter_page_sleep,
            max_pages=args.max_pages,
            node_cap=args.node_cap,
            edge_cap=args.edge_cap,
        )
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    query = TransferQuery(
        since=args.since,
        currency=args.currency,
        receiver=args.receiver,
        limit=cfg.page_size,
    )
    progress = _make_progress_reporter()

    # Ports
    if args.records_file:
        try:
            source = StaticTransferAdapter.from_json_file(args.records_file)
        except (OSError, ValueError) as exc:
            progress("error", {"message": f"Cannot read {args.records_file}: {exc}"})
            return 2
        adapter_label = "StaticTransferAdapter (dev/testing)"
    else:
        if not settings.BITQUERY_OAUTH_TOKEN:
            progress("error", {"message": "Missing BITQUERY_OAUTH_TOKEN environment variable"})
            return 2
        source = BitqueryTransferAdapter(policy=cfg.retry_policy())
        adapter_label = "BitqueryTransferAdapter"

    svc = BubbleMapService(source=source)
    print(f"Adapter: {adapter_label}")
    try:
        graph = svc.run(query, cfg, on_progress=progress)
    except BubbleMapError as exc:
        progress("error", {"message": f"{exc.__class__.__name__}: {exc}"})
        return 1

    # Outputs
    print("Writing outputs...")
    try:
        graph_path = write_graph_json(graph, args.out)
        summary_path = write_summary_md(graph, args.out, receiver=args.receiver, stats=svc.last_stats)
        html_path = write_bubblemap_html(graph, args.out, template_path=args.template)
    except OSError as exc:
        progress("error", {"message": f"Cannot write outputs to {args.out}: {exc}"})
        return 1

    print(f"Wrote: {graph_path}")
    print(f"Wrote: {summary_path}")
    print(f"Wrote: {html_path}")

    if args.open:
        webbrowser.open(Path(html_path).resolve().as_uri())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
