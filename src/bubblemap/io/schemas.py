from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from bubblemap.core.models import Graph


def _dec_to_num(x: Decimal) -> float:
    # the template sizes bubbles from these, so they must be JSON numbers
    return float(x)


def graph_to_dict(g: Graph) -> Dict[str, Any]:
    return {
        "nodes": [
            {
                "id": n.id,
                "label": n.label,
                "value": _dec_to_num(n.value),
            }
            for n in g.nodes
        ],
        "links": [
            {
                "source": e.source,
                "target": e.target,
                "value": _dec_to_num(e.value),
                "count": e.count,
            }
            for e in g.edges
        ],
    }
