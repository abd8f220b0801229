from __future__ import annotations

from typing import List, Set

from bubblemap.core.models import Edge, FlowAccumulator, Graph, Node


def _node_sort_key(n: Node):
    # value desc, then address asc
    return (-n.value, n.id)


def _edge_sort_key(e: Edge):
    return (-e.value, e.source, e.target)


def rank_nodes(acc: FlowAccumulator, node_cap: int) -> List[Node]:
    nodes = [Node(id=addr, label=addr, value=value) for addr, value in acc.node_value.items()]
    nodes.sort(key=_node_sort_key)
    return nodes[:node_cap]


def rank_edges(acc: FlowAccumulator, allowed: Set[str], edge_cap: int) -> List[Edge]:
    edges: List[Edge] = []
    for (source, target), value in acc.edge_value.items():
        if source not in allowed or target not in allowed:
            continue
        edges.append(
            Edge(
                source=source,
                target=target,
                value=value,
                count=acc.edge_count.get((source, target), 0),
            )
        )
    edges.sort(key=_edge_sort_key)
    return edges[:edge_cap]


def reduce_graph(acc: FlowAccumulator, node_cap: int, edge_cap: int) -> Graph:
    """
    Project the accumulated totals onto a bounded graph.

    Keeps the `node_cap` highest-value participants, drops every edge that
    touches a participant outside that set, then keeps the `edge_cap`
    highest-value edges. Ties rank by address (edges by source, then target)
    so the output does not depend on arrival order. The accumulator is only
    read.
    """
    if node_cap < 0 or edge_cap < 0:
        raise ValueError("node_cap and edge_cap must be >= 0")

    nodes = rank_nodes(acc, node_cap)
    allowed = {n.id for n in nodes}
    edges = rank_edges(acc, allowed, edge_cap)
    return Graph(nodes=nodes, edges=edges)
