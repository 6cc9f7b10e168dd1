"""
Unsigned transaction assembly.

Inputs follow the caller's UTXO order, outputs follow the payment order with
change (if any) last.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from btcsend.address import address_to_scriptpubkey
from btcsend.backends.base import ExplorerBackend
from btcsend.constants import sequence_for
from btcsend.errors import UpstreamFetchError
from btcsend.models import NetworkType, TransactionRequest, UtxoRecord
from btcsend.reconcile import ReconciliationResult
from btcsend.strategies import InputDescriptor, InputStrategy
from btcsend.transaction import Transaction, TxIn, TxOut

DEFAULT_FETCH_CONCURRENCY = 5


@dataclass
class AssembledTransaction:
    tx: Transaction
    descriptors: list[InputDescriptor]
    change_output_index: int | None = None


class TransactionAssembler:
    def __init__(
        self,
        backend: ExplorerBackend,
        strategy: InputStrategy,
        network: NetworkType | str = NetworkType.MAINNET,
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
    ):
        self.backend = backend
        self.strategy = strategy
        self.network = NetworkType(network)
        self._fetch_semaphore = asyncio.Semaphore(max(1, fetch_concurrency))

    async def _fetch_one(self, utxo: UtxoRecord) -> bytes:
        async with self._fetch_semaphore:
            try:
                raw_hex = await self.backend.get_raw_transaction(utxo.txid)
            except UpstreamFetchError:
                raise
            except Exception as e:
                raise UpstreamFetchError(f"Error fetching raw transaction {utxo.txid}: {e}") from e

        try:
            return bytes.fromhex(raw_hex)
        except ValueError as e:
            raise UpstreamFetchError(f"Raw transaction {utxo.txid} is not valid hex") from e

    async def fetch_previous_transactions(
        self, utxos: Sequence[UtxoRecord]
    ) -> list[bytes | None]:
        """
        Fetch the previous transaction of every UTXO when the strategy needs them.

        Results are indexed like ``utxos`` regardless of completion order. The first
        failure cancels the remaining fetches.
        """
        if not self.strategy.needs_previous_tx:
            return [None] * len(utxos)

        tasks = [asyncio.create_task(self._fetch_one(utxo)) for utxo in utxos]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return list(results)

    def build_outputs(
        self, reconciliation: ReconciliationResult, change_address: str
    ) -> tuple[list[TxOut], int | None]:
        outputs = [
            TxOut(
                value=payment.amount,
                script_pubkey=address_to_scriptpubkey(payment.address, self.network),
            )
            for payment in reconciliation.payments
        ]

        if not reconciliation.has_change:
            if reconciliation.change_value:
                logger.info(
                    f"Change of {reconciliation.change_value} sats is dust, adding it to the fee"
                )
            return outputs, None

        outputs.append(
            TxOut(
                value=reconciliation.change_value,
                script_pubkey=address_to_scriptpubkey(change_address, self.network),
            )
        )
        return outputs, len(outputs) - 1

    async def assemble(
        self, request: TransactionRequest, reconciliation: ReconciliationResult
    ) -> AssembledTransaction:
        """
        Build the unsigned transaction for a request.

        Raises:
            UpstreamFetchError: If any previous transaction cannot be fetched
            MalformedInputError: If an address or UTXO does not match the network/data
        """
        # Validate outputs before any network traffic
        outputs, change_index = self.build_outputs(reconciliation, request.change_address)

        sequence = sequence_for(request.rbf)
        previous_txs = await self.fetch_previous_transactions(request.utxos)

        descriptors: list[InputDescriptor] = []
        inputs: list[TxIn] = []
        for utxo, previous_tx in zip(request.utxos, previous_txs, strict=True):
            descriptor = self.strategy.build_input(utxo, sequence, previous_tx)
            descriptors.append(descriptor)
            inputs.append(TxIn(txid=utxo.txid, vout=utxo.vout, sequence=sequence))
            logger.debug(f"Added {descriptor.script_type.value} input {utxo.outpoint}")

        tx = Transaction(inputs=inputs, outputs=outputs)
        logger.info(
            f"Assembled transaction with {len(inputs)} input(s) and {len(outputs)} output(s)"
        )
        return AssembledTransaction(
            tx=tx, descriptors=descriptors, change_output_index=change_index
        )
