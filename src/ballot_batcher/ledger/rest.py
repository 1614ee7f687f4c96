"""
Sawtooth REST API adapter for ledger access.

Submits batches and reads state through the validator's REST API.
"""

import base64
import binascii
from typing import Any, List, Optional

import httpx
import structlog

from ballot_batcher.config import BallotConfig, get_config
from ballot_batcher.ledger import messages
from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.ledger.interface import (
    BatchStatus,
    LedgerConnectionError,
    LedgerInterface,
    SubmissionError,
    SubmitResult,
    TransactionRecord,
)

logger = structlog.get_logger(__name__)


class SawtoothRestClient(LedgerInterface):
    """
    Sawtooth REST API adapter.

    Implements the LedgerInterface using the `/batches`, `/state` and
    `/batch_statuses` endpoints.
    """

    def __init__(
        self,
        config: Optional[BallotConfig] = None,
        addressing: Optional[AddressScheme] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the REST adapter.

        Args:
            config: Client configuration. Uses global config if not provided.
            addressing: Address scheme for identifier lookups
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        super().__init__(addressing or AddressScheme.from_label(self.config.namespace_label))
        self.base_url = self.config.uri.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.request_timeout_seconds,
            transport=self._transport,
        )
        logger.info("ledger_client_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("ledger_client_disconnected")

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs,
    ) -> Any:
        """Make an API request; returns None on 404."""
        if not self._client:
            await self.connect()

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("ledger_request_error", path=path, error=str(e))
            raise LedgerConnectionError(f"Ledger request failed: {e}")

        if response.status_code == 404:
            return None

        if response.status_code != 200:
            logger.error(
                "ledger_request_failed",
                path=path,
                status=response.status_code,
                error=response.text,
            )
            raise LedgerConnectionError(f"Ledger API error: {_error_message(response)}")

        return response.json()

    async def submit_batch(self, batch_list_bytes: bytes) -> SubmitResult:
        """Submit a serialized batch list."""
        batch_list = messages.parse(messages.BatchList, batch_list_bytes)
        batch_ids = [batch.header_signature for batch in batch_list.batches]

        if not self._client:
            await self.connect()

        try:
            response = await self._client.post(
                "/batches",
                content=batch_list_bytes,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.RequestError as e:
            raise SubmissionError(f"Batch submission request failed: {e}")

        if response.status_code not in (200, 201, 202):
            logger.error("batch_submit_failed", status=response.status_code, error=response.text)
            raise SubmissionError(
                f"Batch submission failed: {_error_message(response)}",
                error_code=_error_code(response),
            )

        link = None
        try:
            link = response.json().get("link")
        except ValueError:
            pass

        logger.info("batch_submitted", batch_id=batch_ids[0][:16] + "...", link=link)
        return SubmitResult(batch_id=",".join(batch_ids), link=link)

    async def fetch_state(self, address: str) -> Optional[TransactionRecord]:
        """Get state at an address."""
        data = await self._request("GET", f"/state/{address}")

        if not data or data.get("data") is None:
            return None

        return TransactionRecord(address=address, data=_decode_state(data["data"]))

    async def fetch_state_by_prefix(self, prefix: str) -> List[TransactionRecord]:
        """Get all state entries under a prefix, following paging links."""
        records = []
        url = "/state"
        params = {"address": prefix}

        while url:
            data = await self._request("GET", url, params=params)
            if not data:
                break

            for entry in data.get("data", []):
                records.append(
                    TransactionRecord(
                        address=entry["address"],
                        data=_decode_state(entry["data"]),
                    )
                )

            # The next link already carries every query parameter
            url = (data.get("paging") or {}).get("next")
            params = None

        logger.debug("state_fetched", prefix=prefix[:20] + "...", count=len(records))
        return records

    async def get_batch_status(
        self,
        batch_id: str,
        wait: Optional[int] = None,
    ) -> BatchStatus:
        """Get batch commit status."""
        params = {"id": batch_id}
        if wait:
            params["wait"] = str(wait)

        data = await self._request("GET", "/batch_statuses", params=params)
        if not data or not data.get("data"):
            return BatchStatus.UNKNOWN

        entry = data["data"][0]
        status = BatchStatus(entry.get("status", "UNKNOWN"))

        for invalid in entry.get("invalid_transactions", []):
            logger.warning(
                "batch_transaction_invalid",
                batch_id=batch_id[:16] + "...",
                tx_id=invalid.get("id", "")[:16] + "...",
                message=invalid.get("message"),
            )

        return status


def _decode_state(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise LedgerConnectionError(f"Ledger returned malformed state data: {e}")


def _error_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def _error_message(response: httpx.Response) -> str:
    error = _error_body(response)
    return error.get("message") or error.get("title") or response.text


def _error_code(response: httpx.Response) -> Optional[int]:
    return _error_body(response).get("code")
