"""
Base explorer backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ExplorerBackend(ABC):
    """
    Collaborator for the two network operations of the pipeline: fetching
    previous transactions and broadcasting finished ones.
    """

    @abstractmethod
    async def get_raw_transaction(self, txid: str) -> str:
        """Get raw transaction hex by txid. Raises UpstreamFetchError on failure."""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid. Raises BroadcastError on failure."""

    async def close(self) -> None:
        """Close backend connection"""
        pass
