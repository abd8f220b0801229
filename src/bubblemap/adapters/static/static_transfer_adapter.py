import json
from pathlib import Path
from typing import List, Optional

from bubblemap.adapters.bitquery.bitquery_transfer_adapter import transfer_from_row
from bubblemap.core.dto import RawTransfer, TransferQuery
from bubblemap.ports.transfer_source_port import TransferSourcePort


class StaticTransferAdapter(TransferSourcePort):
    def __init__(self, transfers: Optional[List[RawTransfer]] = None):
        self._transfers = list(transfers or [])
        self.queries: List[TransferQuery] = []

    @classmethod
    def from_json_file(cls, path: str) -> "StaticTransferAdapter":
        """
        Load a JSON list of raw Bitquery transfer objects
        (`amount`, `sender.address`, `receiver.address`).
        """
        with Path(path).open("r", encoding="utf-8") as f:
            rows = json.load(f)
        if not isinstance(rows, list):
            raise ValueError(f"{path}: expected a JSON list of transfers")
        return cls([transfer_from_row(r) for r in rows])

    def fetch_page(self, query: TransferQuery) -> List[RawTransfer]:
        self.queries.append(query)
        start = max(0, query.offset)
        return self._transfers[start:start + query.limit]
