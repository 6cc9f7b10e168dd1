"""
Request and result models using Pydantic for validation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationError

from btcsend.constants import MAX_MONEY, MAX_VOUT
from btcsend.errors import MalformedInputError

TXID_PATTERN = r"^[0-9a-fA-F]{64}$"


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


class ScriptType(str, Enum):
    """How the previous outputs of a request are locked."""

    P2WPKH = "p2wpkh"
    P2PKH = "p2pkh"
    P2SH_P2WPKH = "p2sh-p2wpkh"


class UtxoRecord(BaseModel):
    """A spendable prior output and the key that controls it."""

    txid: str = Field(..., pattern=TXID_PATTERN)
    vout: int = Field(..., ge=0, le=MAX_VOUT)
    value: int = Field(..., gt=0, le=MAX_MONEY, description="Value in satoshis")
    key: SecretStr = Field(..., description="WIF-encoded private key")

    model_config = {"frozen": True}

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


class PaymentRequest(BaseModel):
    address: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, le=MAX_MONEY, description="Requested amount in satoshis")

    model_config = {"frozen": True}


class TransactionRequest(BaseModel):
    """A single unit of work: everything needed to build one transaction."""

    utxos: list[UtxoRecord] = Field(..., min_length=1)
    payments: list[PaymentRequest] = Field(..., min_length=1)
    change_address: str = Field(..., min_length=1)
    fee: int = Field(..., ge=0, le=MAX_MONEY, description="Absolute fee in satoshis")
    rbf: bool = False
    broadcast: bool = False
    script_type: ScriptType = ScriptType.P2WPKH

    @property
    def total_input_value(self) -> int:
        return sum(utxo.value for utxo in self.utxos)

    @property
    def requested_amounts(self) -> list[int]:
        return [payment.amount for payment in self.payments]

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], script_type: ScriptType = ScriptType.P2WPKH
    ) -> TransactionRequest:
        """
        Build a request from the caller-facing field names.

        Expected keys: utxosString, recipientAddress, amountToSend, changeAddress,
        transactionFee, RBF, isBroadcast. Recipients and amounts are comma-separated
        and paired by position.

        Raises:
            MalformedInputError: If any field is missing or fails to parse
        """
        from btcsend.parsing import parse_bool, parse_int, parse_payments, parse_utxos

        for field in ("utxosString", "recipientAddress", "amountToSend", "changeAddress"):
            if not isinstance(payload.get(field), str):
                raise MalformedInputError(f"Missing or non-string field: {field}")
        if "transactionFee" not in payload:
            raise MalformedInputError("Missing field: transactionFee")

        try:
            return cls(
                utxos=parse_utxos(payload["utxosString"]),
                payments=parse_payments(payload["recipientAddress"], payload["amountToSend"]),
                change_address=payload["changeAddress"].strip(),
                fee=parse_int(payload["transactionFee"], "transactionFee"),
                rbf=parse_bool(payload.get("RBF")),
                broadcast=parse_bool(payload.get("isBroadcast")),
                script_type=script_type,
            )
        except ValidationError as e:
            raise MalformedInputError(f"Invalid transaction request: {e}") from e


class BuildResult(BaseModel):
    """Signed transaction returned without broadcasting."""

    hex: str
    virtual_size: int = Field(..., gt=0)

    def to_response(self) -> dict[str, Any]:
        return {"hex": self.hex, "virtualSize": self.virtual_size}


class BroadcastResult(BaseModel):
    txid: str = Field(..., min_length=1)

    def to_response(self) -> dict[str, Any]:
        return {"txid": self.txid}
