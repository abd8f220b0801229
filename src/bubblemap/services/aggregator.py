from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Iterable

from bubblemap.config.settings import UNKNOWN_RECEIVER, UNKNOWN_SENDER
from bubblemap.core.dto import RawTransfer
from bubblemap.core.models import EdgeKey, FlowAccumulator


ZERO = Decimal("0")


def usd_amount(raw: Any) -> Decimal:
    """
    Absolute USD value of a reported amount. Anything that is not a finite
    real number (None, strings, booleans, NaN) counts as 0.
    """
    if isinstance(raw, bool) or not isinstance(raw, (int, float, Decimal)):
        return ZERO
    if isinstance(raw, float) and not math.isfinite(raw):
        return ZERO
    if isinstance(raw, Decimal) and not raw.is_finite():
        return ZERO
    return abs(Decimal(str(raw)))


def resolve_parties(t: RawTransfer) -> EdgeKey:
    sender = t.sender_address or UNKNOWN_SENDER
    receiver = t.receiver_address or UNKNOWN_RECEIVER
    return sender, receiver


def _add(totals: dict, key, delta) -> None:
    totals[key] = totals.get(key, 0) + delta


def fold_page(page: Iterable[RawTransfer], acc: FlowAccumulator) -> None:
    for t in page:
        usd = usd_amount(t.amount_usd)
        key = resolve_parties(t)
        sender, receiver = key

        _add(acc.node_value, sender, usd)
        _add(acc.node_value, receiver, usd)
        _add(acc.edge_value, key, usd)
        _add(acc.edge_count, key, 1)
