"""
Bitcoin transaction policy constants.

Change at or below the standard P2PKH dust limit is not emitted; it is
absorbed into the mining fee instead.
"""

from __future__ import annotations

# Standard P2PKH dust limit in Bitcoin Core
DUST_THRESHOLD = 546  # satoshis

# BIP125 opt-in replace-by-fee signal vs. final (non-replaceable) inputs
SEQUENCE_RBF = 0xFFFFFFFD
SEQUENCE_FINAL = 0xFFFFFFFF

TX_VERSION = 2
TX_LOCKTIME = 0

SIGHASH_ALL = 0x01

# Consensus cap on any amount (21 million BTC)
MAX_MONEY = 21_000_000 * 100_000_000  # satoshis

# Output indexes are serialized as uint32
MAX_VOUT = 0xFFFFFFFF

# BIP141: witness bytes count once, everything else four times
WITNESS_SCALE_FACTOR = 4


def sequence_for(rbf: bool) -> int:
    """Sequence number for every input of a transaction."""
    return SEQUENCE_RBF if rbf else SEQUENCE_FINAL
