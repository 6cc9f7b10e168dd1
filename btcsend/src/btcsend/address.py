"""
Bitcoin address to scriptPubKey conversion.
"""

from __future__ import annotations

import base58
import bech32

from btcsend.errors import MalformedInputError
from btcsend.keys import p2pkh_script
from btcsend.models import NetworkType

BECH32_HRP = {
    NetworkType.MAINNET: "bc",
    NetworkType.TESTNET: "tb",
    NetworkType.SIGNET: "tb",
    NetworkType.REGTEST: "bcrt",
}

# (P2PKH, P2SH) base58 version bytes
BASE58_VERSIONS = {
    NetworkType.MAINNET: (0x00, 0x05),
    NetworkType.TESTNET: (0x6F, 0xC4),
    NetworkType.SIGNET: (0x6F, 0xC4),
    NetworkType.REGTEST: (0x6F, 0xC4),
}


def address_to_scriptpubkey(
    address: str, network: NetworkType | str = NetworkType.MAINNET
) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Supports:
    - P2WPKH / P2WSH (bech32, witness v0)
    - P2TR and later witness versions (bech32m)
    - P2PKH and P2SH (base58check)

    Raises:
        MalformedInputError: If the address does not decode or is for another network
    """
    network = NetworkType(network)
    address = address.strip()
    hrp = BECH32_HRP[network]

    if address.lower().startswith(hrp + "1"):
        witver, witprog = bech32.decode(hrp, address)
        if witver is None or witprog is None:
            raise MalformedInputError(f"Invalid bech32 address: {address}")
        # OP_0 for v0, OP_1..OP_16 (0x51..0x60) otherwise
        version_op = 0x00 if witver == 0 else 0x50 + witver
        return bytes([version_op, len(witprog)]) + bytes(witprog)

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise MalformedInputError(f"Invalid address for {network.value}: {address}") from e

    if len(decoded) != 21:
        raise MalformedInputError(f"Invalid base58 address length: {address}")

    version, payload = decoded[0], decoded[1:]
    p2pkh_version, p2sh_version = BASE58_VERSIONS[network]

    if version == p2pkh_version:
        return p2pkh_script(payload)
    if version == p2sh_version:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise MalformedInputError(f"Address version {version:#04x} is not valid for {network.value}")


def pubkey_hash_to_p2wpkh_address(
    pubkey_hash: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    result = bech32.encode(BECH32_HRP[NetworkType(network)], 0, pubkey_hash)
    if result is None:
        raise ValueError(f"Failed to encode P2WPKH address for {pubkey_hash.hex()}")
    return result


def pubkey_hash_to_p2pkh_address(
    pubkey_hash: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    version = BASE58_VERSIONS[NetworkType(network)][0]
    return base58.b58encode_check(bytes([version]) + pubkey_hash).decode("ascii")
