import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from bubblemap.config.settings import (
    BITQUERY_OAUTH_TOKEN,
    BITQUERY_ENDPOINT,
)

from bubblemap.adapters.bitquery.backoff import backoff_sleep
from bubblemap.core.errors import DataSourceError, FatalFetchError, ServiceError, TransportError
from bubblemap.ports.transfer_source_port import TransferSourcePort
from bubblemap.core.dto import RawTransfer, RetryPolicy, TransferQuery


logger = logging.getLogger(__name__)


# receiverAddress is inlined; the other filters travel as variables
_TRANSFERS_GQL = """
query TransfersForBubbleMap($since: ISO8601DateTime!, $currency: String, $limit: Int = 1000, $offset: Int = 0) {
  solana {
    transfers(
      date: { is: $since }
      options: { limit: $limit, offset: $offset, desc: ["date.date", "block.height"] }
      currency: { is: $currency }
      receiverAddress: { is: %s }
    ) {
      amount (in:USD)
      currency { symbol address decimals }
      sender { address }
      receiver { address }
      transaction { signature transactionIndex }
      block { height timestamp { iso8601 } }
      date { date }
    }
  }
}"""


def build_transfers_query(receiver_address: str) -> str:
    return _TRANSFERS_GQL % json.dumps(receiver_address)


def _address(party: Any) -> Optional[str]:
    if not isinstance(party, dict):
        return None
    addr = party.get("address")
    if isinstance(addr, bool):
        return None
    if isinstance(addr, int):
        return str(addr)
    return addr if isinstance(addr, str) else None


def transfer_from_row(row: Any) -> RawTransfer:
    # a malformed row still occupies its slot in the page (0 USD, sentinel parties)
    if not isinstance(row, dict):
        return RawTransfer(amount_usd=None, sender_address=None, receiver_address=None)
    return RawTransfer(
        amount_usd=row.get("amount"),
        sender_address=_address(row.get("sender")),
        receiver_address=_address(row.get("receiver")),
    )


class BitqueryTransferAdapter(TransferSourcePort):

    def __init__(
        self,
        policy: RetryPolicy,
        token: Optional[str] = BITQUERY_OAUTH_TOKEN,
        endpoint: str = BITQUERY_ENDPOINT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if policy.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        self._policy = policy
        self._token = token
        self._endpoint = endpoint
        self._session = session or requests.Session()
        self._sleep = sleep
        self._gql_cache: Dict[str, str] = {}

    # ---------- internal ----------

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _gql_for(self, receiver: str) -> str:
        if receiver not in self._gql_cache:
            self._gql_cache[receiver] = build_transfers_query(receiver)
        return self._gql_cache[receiver]

    def _post(self, query: TransferQuery) -> List[Dict[str, Any]]:
        """
        One attempt. Raises TransportError or ServiceError.
        """
        payload = {"query": self._gql_for(query.receiver), "variables": query.variables()}
        try:
            resp = self._session.post(
                self._endpoint,
                data=json.dumps(payload),
                headers=self._headers(),
                timeout=self._policy.timeout_sec,
            )
            logger.debug("HTTP status=%s", resp.status_code)
            resp.raise_for_status()
        except requests.HTTPError as e:
            body = e.response.text[:300] if e.response is not None else "n/a"
            raise TransportError(f"HTTP error: {e} body={body}") from e
        except requests.RequestException as e:
            raise TransportError(f"Request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON body: {e}") from e

        if not isinstance(data, dict):
            raise ServiceError(f"Unexpected response: {str(data)[:300]}")

        errors = data.get("errors")
        if errors:
            raise ServiceError(json.dumps(errors)[:300], errors=errors)

        try:
            items = data["data"]["solana"]["transfers"]
        except (KeyError, TypeError) as e:
            raise ServiceError(f"Missing data.solana.transfers in response: {str(data)[:300]}") from e

        if items is None:
            return []
        if not isinstance(items, list):
            raise ServiceError(f"transfers is not a list: {str(items)[:300]}")
        return items

    # ---------- port methods ----------

    def fetch_page(self, query: TransferQuery) -> List[RawTransfer]:
        max_attempts = self._policy.max_attempts
        last_err: Optional[DataSourceError] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(
                "fetch attempt=%d limit=%d offset=%d since=%s currency=%s",
                attempt, query.limit, query.offset, query.since, query.currency,
            )
            try:
                rows = self._post(query)
            except (TransportError, ServiceError) as e:
                last_err = e
                logger.warning("fetch error on attempt %d/%d: %s", attempt, max_attempts, e)
                if attempt == max_attempts:
                    break
                delay = backoff_sleep(attempt, self._policy.backoff_base_sec, self._sleep)
                logger.info("retrying after %.3fs", delay)
                continue

            logger.info("fetched items=%d offset=%d", len(rows), query.offset)
            return [transfer_from_row(r) for r in rows]

        logger.error("Bitquery failed after %d attempt(s): %s", max_attempts, last_err)
        raise FatalFetchError(
            f"Bitquery failed after {max_attempts} attempt(s): {last_err}",
            attempts=max_attempts,
        ) from last_err
