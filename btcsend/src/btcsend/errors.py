"""
Errors raised while building a transaction.

Every error is terminal for the request that raised it.
"""

from __future__ import annotations


class TransactionBuildError(Exception):
    """Base class for all pipeline failures."""


class MalformedInputError(TransactionBuildError):
    """UTXO list, payment list or request fields failed to parse."""


class InsufficientFundsError(TransactionBuildError):
    """Fee alone, or fee plus the smallest viable payment, exceeds total input value."""


class UpstreamFetchError(TransactionBuildError):
    """A previous transaction could not be retrieved from the explorer."""


class SigningError(TransactionBuildError):
    """A key does not match the script its input spends, or finalization failed."""


class BroadcastError(TransactionBuildError):
    """Submission failed or returned no transaction identifier."""
