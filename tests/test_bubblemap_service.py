import unittest
from decimal import Decimal
from unittest import mock

import requests

from bubblemap.adapters.bitquery.bitquery_transfer_adapter import BitqueryTransferAdapter
from bubblemap.adapters.static.static_transfer_adapter import StaticTransferAdapter
from bubblemap.core.dto import RawTransfer, TransferQuery
from bubblemap.core.errors import FatalFetchError
from bubblemap.core.models import PipelineConfig, StopReason
from bubblemap.ports.transfer_source_port import TransferSourcePort
from bubblemap.services.bubblemap_service import BubbleMapService


def _transfers(n: int, receiver: str = "R"):
    return [
        RawTransfer(amount_usd=i + 1, sender_address=f"S{i}", receiver_address=receiver)
        for i in range(n)
    ]


class _FailingSource(TransferSourcePort):
    def __init__(self) -> None:
        self.calls = 0

    def fetch_page(self, query):
        self.calls += 1
        if self.calls == 1:
            return _transfers(100)
        raise FatalFetchError("down", attempts=5)


class BubbleMapServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps = []
        self.query = TransferQuery(since="2025-09-24", currency="MINT", receiver="R", limit=100)

    def _make_cfg(self, **overrides) -> PipelineConfig:
        defaults = dict(
            page_size=100,
            max_pages=5,
            inter_page_sleep_sec=0.2,
            node_cap=300,
            edge_cap=1000,
        )
        defaults.update(overrides)
        return PipelineConfig(**defaults)

    def _run(self, source, **overrides):
        svc = BubbleMapService(source=source, sleep=self.sleeps.append)
        events = []
        graph = svc.run(self.query, self._make_cfg(**overrides), on_progress=lambda e, d: events.append((e, d)))
        return svc, graph, events

    def test_short_page_stops_the_loop(self) -> None:
        source = StaticTransferAdapter(_transfers(240))

        svc, graph, events = self._run(source)

        self.assertEqual([q.offset for q in source.queries], [0, 100, 200])
        self.assertTrue(all(q.limit == 100 for q in source.queries))
        self.assertEqual(svc.last_stats.pages, 3)
        self.assertEqual(svc.last_stats.records, 240)
        self.assertEqual(svc.last_stats.stop_reason, StopReason.SHORT_PAGE)
        self.assertEqual(self.sleeps, [0.2, 0.2])
        self.assertEqual(len(graph.nodes), 241)
        self.assertEqual(graph.nodes[0].id, "R")
        self.assertEqual([e for e, _ in events], ["start", "page", "page", "page", "stop", "done"])

    def test_max_pages_stops_the_loop(self) -> None:
        source = StaticTransferAdapter(_transfers(500))

        svc, _, _ = self._run(source, max_pages=2)

        self.assertEqual(len(source.queries), 2)
        self.assertEqual(svc.last_stats.stop_reason, StopReason.MAX_PAGES)
        self.assertEqual(self.sleeps, [0.2])

    def test_zero_max_pages_is_unlimited(self) -> None:
        source = StaticTransferAdapter(_transfers(750))

        svc, _, _ = self._run(source, max_pages=0, inter_page_sleep_sec=0)

        self.assertEqual(svc.last_stats.pages, 8)
        self.assertEqual(svc.last_stats.stop_reason, StopReason.SHORT_PAGE)
        self.assertEqual(self.sleeps, [])

    def test_empty_page_after_full_pages(self) -> None:
        source = StaticTransferAdapter(_transfers(200))

        svc, _, _ = self._run(source)

        self.assertEqual([q.offset for q in source.queries], [0, 100, 200])
        self.assertEqual(svc.last_stats.pages, 2)
        self.assertEqual(svc.last_stats.stop_reason, StopReason.EXHAUSTED)

    def test_empty_source_gives_empty_graph(self) -> None:
        svc, graph, _ = self._run(StaticTransferAdapter())

        self.assertEqual(graph.nodes, [])
        self.assertEqual(graph.edges, [])
        self.assertEqual(svc.last_stats.stop_reason, StopReason.EXHAUSTED)

    def test_two_way_example(self) -> None:
        source = StaticTransferAdapter([
            RawTransfer(amount_usd=10, sender_address="A", receiver_address="B"),
            RawTransfer(amount_usd=5, sender_address="B", receiver_address="A"),
        ])

        _, graph, _ = self._run(source)

        self.assertEqual({(n.id, n.value) for n in graph.nodes}, {("A", Decimal("15")), ("B", Decimal("15"))})
        self.assertEqual(
            [(e.source, e.target, e.value, e.count) for e in graph.edges],
            [("A", "B", Decimal("10"), 1), ("B", "A", Decimal("5"), 1)],
        )
        self.assertEqual(len(source.queries), 1)

    def test_caps_applied_to_result(self) -> None:
        source = StaticTransferAdapter(_transfers(240))

        _, graph, _ = self._run(source, node_cap=10, edge_cap=3)

        self.assertEqual(len(graph.nodes), 10)
        self.assertEqual(len(graph.edges), 3)
        ids = {n.id for n in graph.nodes}
        self.assertTrue(all(e.source in ids and e.target in ids for e in graph.edges))

    def test_malformed_row_does_not_end_paging(self) -> None:
        first = [
            {"amount": i + 1, "sender": {"address": f"S{i}"}, "receiver": {"address": "R"}}
            for i in range(99)
        ] + [None]
        second = [{"amount": 1, "sender": {"address": 7}, "receiver": {"address": "R"}}]
        responses = []
        for rows in (first, second):
            resp = mock.Mock()
            resp.status_code = 200
            resp.json.return_value = {"data": {"solana": {"transfers": rows}}}
            responses.append(resp)
        session = mock.Mock()
        session.post.side_effect = responses
        cfg = self._make_cfg()
        adapter = BitqueryTransferAdapter(policy=cfg.retry_policy(), token="t", session=session)
        svc = BubbleMapService(source=adapter, sleep=self.sleeps.append)

        graph = svc.run(self.query, cfg)

        self.assertEqual(session.post.call_count, 2)
        self.assertEqual(svc.last_stats.records, 101)
        self.assertEqual(svc.last_stats.stop_reason, StopReason.SHORT_PAGE)
        ids = {n.id for n in graph.nodes}
        self.assertIn("UNKNOWN_SENDER", ids)
        self.assertIn("7", ids)

    def test_invalid_config_rejected(self) -> None:
        for overrides in ({"timeout_sec": 0}, {"backoff_base_sec": -1}, {"inter_page_sleep_sec": -0.1}):
            with self.assertRaises(ValueError, msg=repr(overrides)):
                self._make_cfg(**overrides)

    def test_fetch_failure_propagates(self) -> None:
        source = _FailingSource()
        svc = BubbleMapService(source=source, sleep=self.sleeps.append)

        with self.assertRaises(FatalFetchError):
            svc.run(self.query, self._make_cfg())

        self.assertEqual(source.calls, 2)
        self.assertIsNone(svc.last_stats)

    def test_retried_page_is_folded_once(self) -> None:
        ok = mock.Mock()
        ok.status_code = 200
        ok.json.return_value = {"data": {"solana": {"transfers": [
            {"amount": 10, "sender": {"address": "A"}, "receiver": {"address": "B"}},
        ]}}}
        session = mock.Mock()
        session.post.side_effect = [requests.Timeout("slow"), requests.ConnectionError("reset"), ok]
        cfg = self._make_cfg(max_attempts=5, backoff_base_sec=0.8)
        adapter = BitqueryTransferAdapter(
            policy=cfg.retry_policy(), token="t", session=session, sleep=self.sleeps.append,
        )
        svc = BubbleMapService(source=adapter, sleep=self.sleeps.append)

        graph = svc.run(self.query, cfg)

        self.assertEqual(session.post.call_count, 3)
        self.assertEqual(len(self.sleeps), 2)
        self.assertAlmostEqual(self.sleeps[0], 0.8)
        self.assertAlmostEqual(self.sleeps[1], 1.6)
        self.assertEqual([(e.source, e.target, e.count) for e in graph.edges], [("A", "B", 1)])


if __name__ == "__main__":
    unittest.main()
