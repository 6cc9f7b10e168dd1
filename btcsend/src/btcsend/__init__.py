"""
btcsend - Build, sign and broadcast Bitcoin transactions from a given UTXO set.

Supports P2WPKH, P2PKH and P2SH-P2WPKH inputs through one shared
reconciliation and assembly pipeline.
"""

__version__ = "1.0.0"

from btcsend.constants import DUST_THRESHOLD, SEQUENCE_FINAL, SEQUENCE_RBF
from btcsend.errors import (
    BroadcastError,
    InsufficientFundsError,
    MalformedInputError,
    SigningError,
    TransactionBuildError,
    UpstreamFetchError,
)
from btcsend.models import (
    BroadcastResult,
    BuildResult,
    NetworkType,
    PaymentRequest,
    ScriptType,
    TransactionRequest,
    UtxoRecord,
)
from btcsend.reconcile import ReconciliationResult, reconcile_amounts
from btcsend.service import TransactionService

__all__ = [
    "BroadcastError",
    "BroadcastResult",
    "BuildResult",
    "DUST_THRESHOLD",
    "InsufficientFundsError",
    "MalformedInputError",
    "NetworkType",
    "PaymentRequest",
    "ReconciliationResult",
    "ScriptType",
    "SEQUENCE_FINAL",
    "SEQUENCE_RBF",
    "SigningError",
    "TransactionBuildError",
    "TransactionRequest",
    "TransactionService",
    "UpstreamFetchError",
    "UtxoRecord",
    "reconcile_amounts",
]
