from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from bubblemap.core.dto import RawTransfer, TransferQuery


class TransferSourcePort(ABC):
    """
    Abstract Class for fetching one page of transfers for a currency/receiver pair.
    """

    @abstractmethod
    def fetch_page(self, query: TransferQuery) -> List[RawTransfer]:
        """
        Return the records at `query.offset` (at most `query.limit`).
        An empty list means the source is exhausted.
        """
        raise NotImplementedError
