"""
notamperdata SDK - Ledger Client

REST client for the Blockfrost Cardano API.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import requests

log = logging.getLogger(__name__)

# Status codes worth retrying: too early, rate limited, server side
TRANSIENT_STATUS = {408, 425, 429, 500, 502, 503, 504}


class LedgerError(Exception):
    """Ledger API call failed."""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Ledger Error {status_code}: {message}")

    @property
    def transient(self) -> bool:
        """Connection failures (status -1) and overload responses."""
        return self.status_code == -1 or self.status_code in TRANSIENT_STATUS


@dataclass(frozen=True)
class MetadataEntry:
    """One transaction's metadata under a given label."""
    tx_hash: str
    label: int
    payload: Any


class BlockfrostClient:
    """
    Blockfrost API client.

    Usage:
        client = BlockfrostClient(
            "https://cardano-preview.blockfrost.io/api/v0", "previewXXXX")
        utxos = client.address_utxos("addr_test1...")
        tx_id = client.submit_tx(signed_cbor)
        for entry in client.label_entries(8434):
            ...
    """

    def __init__(self, base_url: str, project_id: str,
                 timeout: int = 30, page_size: int = 100,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        self.session.headers.update({"project_id": project_id})

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Make API call, raising LedgerError on anything but 2xx."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise LedgerError(-1, f"Connection failed: {e}")

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("message") or body.get("error") or response.text
            except ValueError:
                message = response.text
            raise LedgerError(response.status_code, str(message))

        return response

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params).json()

    def _paged(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Yield items from every page of a list endpoint, in server order."""
        page = 1
        while True:
            query = dict(params or {})
            query.update({"page": page, "count": self.page_size})
            items = self._get(path, query)
            if not items:
                return
            for item in items:
                yield item
            if len(items) < self.page_size:
                return
            page += 1

    # ═══════════════════════════════════════════════════════════════════════
    # HOLDINGS
    # ═══════════════════════════════════════════════════════════════════════

    def address_utxos(self, address: str) -> List[dict]:
        """
        All unspent outputs at address.

        Returns:
            List of Blockfrost UTxO objects; empty if the address is unknown
        """
        try:
            return list(self._paged(f"/addresses/{address}/utxos"))
        except LedgerError as e:
            if e.status_code == 404:
                return []
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ═══════════════════════════════════════════════════════════════════════

    def submit_tx(self, signed_tx: bytes) -> str:
        """
        Submit a signed transaction.

        Args:
            signed_tx: Serialized signed transaction (CBOR)

        Returns:
            Transaction id (hex)
        """
        response = self._request(
            "POST", "/tx/submit",
            data=signed_tx,
            headers={"Content-Type": "application/cbor"}
        )
        return response.json()

    def tx_info(self, tx_hash: str) -> Optional[dict]:
        """
        Transaction details once it is in a block.

        Returns:
            {"hash": ..., "block_height": ..., "block_time": ..., "index": ...}
            or None while the ledger does not know the transaction
        """
        try:
            return self._get(f"/txs/{tx_hash}")
        except LedgerError as e:
            if e.status_code == 404:
                return None
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # METADATA
    # ═══════════════════════════════════════════════════════════════════════

    def label_entries(self, label: int) -> Iterator[MetadataEntry]:
        """
        Iterate over every transaction carrying metadata under label.

        Pages are fetched lazily in ascending chain order.
        """
        try:
            for item in self._paged(f"/metadata/txs/labels/{label}", {"order": "asc"}):
                yield MetadataEntry(
                    tx_hash=item["tx_hash"],
                    label=int(label),
                    payload=item.get("json_metadata")
                )
        except LedgerError as e:
            if e.status_code == 404:
                return
            raise

    def protocol_parameters(self) -> dict:
        """Current epoch protocol parameters (min_fee_a, min_fee_b, ...)."""
        return self._get("/epochs/latest/parameters")

    def test_connection(self) -> bool:
        """Test if the API is reachable with our project id."""
        try:
            self._get("/health")
            return True
        except LedgerError:
            return False
