"""
Block explorer REST backend.

Raw previous transactions are fetched from a blockchain.info style endpoint
(``GET {explorer_url}/rawtx/{txid}?format=hex``) and finished transactions are
pushed to a mempool.space style endpoint (``POST {broadcast_url}/tx`` with the
raw hex as a text/plain body).
"""

from __future__ import annotations

import json
import re

import httpx
from loguru import logger

from btcsend.backends.base import ExplorerBackend
from btcsend.errors import BroadcastError, UpstreamFetchError

DEFAULT_EXPLORER_URL = "https://blockchain.info"
DEFAULT_BROADCAST_URL = "https://mempool.space/api"

# Timeout for every outbound call (seconds)
DEFAULT_TIMEOUT = 30.0

_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")
_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def _extract_txid(body: str) -> str | None:
    """Broadcast endpoints answer with the bare txid or with JSON carrying it."""
    body = body.strip()
    if _TXID_RE.match(body):
        return body.lower()
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict):
        txid = data.get("txid")
        if isinstance(txid, str) and _TXID_RE.match(txid):
            return txid.lower()
    return None


class HttpExplorerBackend(ExplorerBackend):
    def __init__(
        self,
        explorer_url: str = DEFAULT_EXPLORER_URL,
        broadcast_url: str = DEFAULT_BROADCAST_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.explorer_url = explorer_url.rstrip("/")
        self.broadcast_url = broadcast_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout)

    async def get_raw_transaction(self, txid: str) -> str:
        url = f"{self.explorer_url}/rawtx/{txid}"

        try:
            response = await self.client.get(url, params={"format": "hex"})
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Fetching raw transaction {txid} timed out")
            raise UpstreamFetchError(f"Timed out fetching raw transaction {txid}") from e
        except httpx.HTTPError as e:
            logger.error(f"Fetching raw transaction {txid} failed: {e}")
            raise UpstreamFetchError(f"Error fetching raw transaction {txid}: {e}") from e

        raw_hex = response.text.strip()
        if not _HEX_RE.match(raw_hex):
            raise UpstreamFetchError(f"Explorer returned non-hex data for transaction {txid}")

        logger.debug(f"Fetched raw transaction {txid} ({len(raw_hex) // 2} bytes)")
        return raw_hex

    async def broadcast_transaction(self, tx_hex: str) -> str:
        url = f"{self.broadcast_url}/tx"

        try:
            response = await self.client.post(
                url, content=tx_hex, headers={"Content-Type": "text/plain"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text.strip()
            logger.error(f"Broadcast rejected ({e.response.status_code}): {detail}")
            raise BroadcastError(f"Error broadcasting transaction: {detail or e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Broadcast failed: {e}")
            raise BroadcastError(f"Error broadcasting transaction: {e}") from e

        txid = _extract_txid(response.text)
        if txid is None:
            raise BroadcastError("Broadcast succeeded but did not return a txid")

        logger.info(f"Broadcast accepted, txid {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
