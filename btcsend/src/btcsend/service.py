"""
Transaction build pipeline.

Parse -> reconcile -> fetch + build inputs -> build outputs -> sign ->
finalize -> serialize -> broadcast or return. Nothing is kept between
requests.
"""

from __future__ import annotations

from loguru import logger

from btcsend.assembler import DEFAULT_FETCH_CONCURRENCY, TransactionAssembler
from btcsend.backends.base import ExplorerBackend
from btcsend.errors import BroadcastError
from btcsend.models import (
    BroadcastResult,
    BuildResult,
    NetworkType,
    TransactionRequest,
)
from btcsend.reconcile import reconcile_amounts
from btcsend.signing import sign_transaction
from btcsend.strategies import get_strategy
from btcsend.transaction import Transaction


class TransactionService:
    def __init__(
        self,
        backend: ExplorerBackend,
        network: NetworkType | str = NetworkType.MAINNET,
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
    ):
        self.backend = backend
        self.network = NetworkType(network)
        self.fetch_concurrency = fetch_concurrency

    async def build(self, request: TransactionRequest) -> Transaction:
        """Build and sign the transaction for a request without broadcasting it."""
        logger.info(
            f"Building {request.script_type.value} transaction: {len(request.utxos)} UTXO(s), "
            f"{len(request.payments)} payment(s), fee {request.fee} sats, rbf={request.rbf}"
        )

        reconciliation = reconcile_amounts(
            request.total_input_value,
            request.fee,
            [(payment.address, payment.amount) for payment in request.payments],
        )

        # A fresh assembler per request so fetch concurrency is bounded per request
        assembler = TransactionAssembler(
            backend=self.backend,
            strategy=get_strategy(request.script_type, self.network),
            network=self.network,
            fetch_concurrency=self.fetch_concurrency,
        )
        assembled = await assembler.assemble(request, reconciliation)

        tx = sign_transaction(assembled.tx, assembled.descriptors, self.network)
        logger.info(
            f"Signed transaction {tx.txid}: paid {reconciliation.total_paid} sats, "
            f"fee {reconciliation.effective_fee} sats, vsize {tx.virtual_size}"
        )
        return tx

    async def create_transaction(
        self, request: TransactionRequest
    ) -> BuildResult | BroadcastResult:
        """
        Run the whole pipeline for one request.

        Returns:
            BroadcastResult when the request asks for broadcasting, else BuildResult

        Raises:
            TransactionBuildError: Any pipeline failure; no partial state is returned
        """
        tx = await self.build(request)
        tx_hex = tx.to_hex()

        if not request.broadcast:
            logger.info("Transaction prepared but not broadcast")
            return BuildResult(hex=tx_hex, virtual_size=tx.virtual_size)

        try:
            txid = await self.backend.broadcast_transaction(tx_hex)
        except BroadcastError:
            raise
        except Exception as e:
            raise BroadcastError(f"Failed to broadcast transaction: {e}") from e

        if not txid:
            raise BroadcastError("Broadcast succeeded but did not return a txid")

        logger.info(f"Transaction broadcast, txid {txid}")
        return BroadcastResult(txid=txid)
