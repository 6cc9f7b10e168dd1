"""
Test configuration for btcsend tests.
"""

from __future__ import annotations

import asyncio

import pytest

from btcsend.backends.base import ExplorerBackend
from btcsend.constants import SEQUENCE_FINAL
from btcsend.errors import UpstreamFetchError
from btcsend.keys import (
    decode_wif,
    encode_wif,
    p2pkh_script,
    p2sh_script,
    p2wpkh_script,
)
from btcsend.transaction import Transaction, TxIn, TxOut

# Private key 1 (generator point G) - well-known test key, never use with real funds
G_SECRET = (1).to_bytes(32, "big")
G_WIF = "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn"
G_PUBKEY_HASH = bytes.fromhex("751e76e8199196d454941c45d1b3a323f1433bd6")
G_P2WPKH_ADDRESS = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
G_P2PKH_ADDRESS = "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"

SECOND_SECRET = bytes.fromhex("11" * 32)
SECOND_WIF = encode_wif(SECOND_SECRET)


def make_previous_tx(script_pubkey: bytes, value: int, vout: int = 0) -> Transaction:
    """A parseable funding transaction paying ``value`` to ``script_pubkey`` at ``vout``."""
    filler = [TxOut(value=1000 + i, script_pubkey=bytes([0x51])) for i in range(vout)]
    return Transaction(
        inputs=[
            TxIn(
                txid="ab" * 32,
                vout=0,
                sequence=SEQUENCE_FINAL,
                script_sig=bytes([0x51]),
            )
        ],
        outputs=filler + [TxOut(value=value, script_pubkey=script_pubkey)],
        version=1,
    )


def funding_script(wif: str, script_type: str) -> bytes:
    key = decode_wif(wif)
    if script_type == "p2pkh":
        return p2pkh_script(key.pubkey_hash)
    if script_type == "p2sh-p2wpkh":
        return p2sh_script(p2wpkh_script(key.pubkey_hash))
    return p2wpkh_script(key.pubkey_hash)


class FakeExplorer(ExplorerBackend):
    """In-memory explorer recording every call."""

    def __init__(
        self,
        transactions: dict[str, str] | None = None,
        broadcast_txid: str = "cd" * 32,
        delays: dict[str, float] | None = None,
    ):
        self.transactions = transactions or {}
        self.broadcast_txid = broadcast_txid
        self.delays = delays or {}
        self.fetched: list[str] = []
        self.broadcasts: list[str] = []
        self.closed = False

    def add(self, tx: Transaction) -> str:
        self.transactions[tx.txid] = tx.to_hex()
        return tx.txid

    async def get_raw_transaction(self, txid: str) -> str:
        await asyncio.sleep(self.delays.get(txid, 0))
        self.fetched.append(txid)
        if txid not in self.transactions:
            raise UpstreamFetchError(f"Error fetching raw transaction {txid}: 404")
        return self.transactions[txid]

    async def broadcast_transaction(self, tx_hex: str) -> str:
        self.broadcasts.append(tx_hex)
        return self.broadcast_txid

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def explorer() -> FakeExplorer:
    return FakeExplorer()
