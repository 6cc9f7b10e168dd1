"""
Input descriptor strategies, one per spending script type.

A request is homogeneous: one strategy is selected for all of its inputs.

- P2WPKH: the previous output script is derived from the key and the value is
  taken from the UTXO record, so the previous transaction is never fetched.
- P2PKH: legacy signatures cover the whole previous transaction, so its raw
  bytes are embedded and the output script and value are read from them.
- P2SH-P2WPKH: the previous transaction is embedded as for P2PKH, plus the
  P2WPKH redeem script revealed in scriptSig.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from loguru import logger

from btcsend.errors import MalformedInputError, SigningError, UpstreamFetchError
from btcsend.keys import SigningKey, decode_wif, p2wpkh_script
from btcsend.models import NetworkType, ScriptType, UtxoRecord
from btcsend.transaction import Transaction, TransactionParseError, deserialize_transaction


@dataclass(frozen=True)
class InputDescriptor:
    """Everything the signer needs to spend one UTXO."""

    utxo: UtxoRecord
    script_type: ScriptType
    sequence: int
    prevout_script: bytes
    value: int
    previous_tx: bytes | None = None
    redeem_script: bytes | None = None

    @property
    def txid(self) -> str:
        return self.utxo.txid

    @property
    def vout(self) -> int:
        return self.utxo.vout


class InputStrategy(ABC):
    script_type: ClassVar[ScriptType]
    needs_previous_tx: ClassVar[bool]

    def __init__(self, network: NetworkType | str = NetworkType.MAINNET):
        self.network = NetworkType(network)

    def signing_key(self, utxo: UtxoRecord) -> SigningKey:
        return decode_wif(utxo.key.get_secret_value(), self.network)

    @abstractmethod
    def build_input(
        self, utxo: UtxoRecord, sequence: int, previous_tx: bytes | None = None
    ) -> InputDescriptor:
        """Build the descriptor for spending ``utxo``."""


def _witness_key(strategy: InputStrategy, utxo: UtxoRecord) -> SigningKey:
    key = strategy.signing_key(utxo)
    if not key.compressed:
        raise SigningError(f"Input {utxo.outpoint}: witness spends require a compressed key")
    return key


def parse_previous_transaction(utxo: UtxoRecord, previous_tx: bytes | None) -> Transaction:
    """
    Parse the fetched previous transaction and check it is the one referenced.

    Raises:
        UpstreamFetchError: If the bytes are missing, unparseable, or hash to another txid
        MalformedInputError: If the output index or value disagrees with the UTXO record
    """
    if previous_tx is None:
        raise UpstreamFetchError(f"Previous transaction for {utxo.outpoint} was not fetched")

    try:
        tx = deserialize_transaction(previous_tx)
    except TransactionParseError as e:
        raise UpstreamFetchError(f"Previous transaction {utxo.txid} is malformed: {e}") from e

    if tx.txid != utxo.txid:
        raise UpstreamFetchError(
            f"Fetched transaction hashes to {tx.txid}, expected {utxo.txid}"
        )
    if utxo.vout >= len(tx.outputs):
        raise MalformedInputError(
            f"Transaction {utxo.txid} has {len(tx.outputs)} outputs, no vout {utxo.vout}"
        )

    value = tx.outputs[utxo.vout].value
    if value != utxo.value:
        raise MalformedInputError(
            f"UTXO {utxo.outpoint} claims {utxo.value} sats but the output holds {value}"
        )
    return tx


class P2WPKHStrategy(InputStrategy):
    script_type = ScriptType.P2WPKH
    needs_previous_tx = False

    def build_input(
        self, utxo: UtxoRecord, sequence: int, previous_tx: bytes | None = None
    ) -> InputDescriptor:
        key = _witness_key(self, utxo)
        return InputDescriptor(
            utxo=utxo,
            script_type=self.script_type,
            sequence=sequence,
            prevout_script=p2wpkh_script(key.pubkey_hash),
            value=utxo.value,
        )


class P2PKHStrategy(InputStrategy):
    script_type = ScriptType.P2PKH
    needs_previous_tx = True

    def build_input(
        self, utxo: UtxoRecord, sequence: int, previous_tx: bytes | None = None
    ) -> InputDescriptor:
        # Decoded up front so a bad WIF fails before signing starts
        self.signing_key(utxo)
        tx = parse_previous_transaction(utxo, previous_tx)
        output = tx.outputs[utxo.vout]
        return InputDescriptor(
            utxo=utxo,
            script_type=self.script_type,
            sequence=sequence,
            prevout_script=output.script_pubkey,
            value=output.value,
            previous_tx=previous_tx,
        )


class P2SHP2WPKHStrategy(InputStrategy):
    script_type = ScriptType.P2SH_P2WPKH
    needs_previous_tx = True

    def build_input(
        self, utxo: UtxoRecord, sequence: int, previous_tx: bytes | None = None
    ) -> InputDescriptor:
        key = _witness_key(self, utxo)
        tx = parse_previous_transaction(utxo, previous_tx)
        output = tx.outputs[utxo.vout]
        redeem_script = p2wpkh_script(key.pubkey_hash)
        logger.debug(f"Input {utxo.outpoint}: redeem script {redeem_script.hex()}")
        return InputDescriptor(
            utxo=utxo,
            script_type=self.script_type,
            sequence=sequence,
            prevout_script=output.script_pubkey,
            value=output.value,
            previous_tx=previous_tx,
            redeem_script=redeem_script,
        )


STRATEGIES: dict[ScriptType, type[InputStrategy]] = {
    ScriptType.P2WPKH: P2WPKHStrategy,
    ScriptType.P2PKH: P2PKHStrategy,
    ScriptType.P2SH_P2WPKH: P2SHP2WPKHStrategy,
}


def get_strategy(
    script_type: ScriptType | str, network: NetworkType | str = NetworkType.MAINNET
) -> InputStrategy:
    return STRATEGIES[ScriptType(script_type)](network)
