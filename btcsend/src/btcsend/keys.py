"""
Private key decoding and standard script templates.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

import base58
from coincurve import PrivateKey

from btcsend.errors import MalformedInputError
from btcsend.models import NetworkType

# WIF version bytes: mainnet vs. every test network
WIF_PREFIX_MAINNET = 0x80
WIF_PREFIX_TESTNET = 0xEF

# Suffix marking a WIF key whose public key is serialized compressed
COMPRESSED_SUFFIX = 0x01

OP_0 = 0x00
OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def wif_prefix(network: NetworkType | str) -> int:
    return WIF_PREFIX_MAINNET if NetworkType(network) == NetworkType.MAINNET else WIF_PREFIX_TESTNET


@dataclass
class SigningKey:
    """A decoded private key together with its public key serialization."""

    private_key: PrivateKey
    compressed: bool

    @property
    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key.format(compressed=self.compressed)

    @property
    def pubkey_hash(self) -> bytes:
        return hash160(self.public_key_bytes)

    def __repr__(self) -> str:
        return f"SigningKey(pubkey={self.public_key_bytes.hex()})"


def decode_wif(wif: str, network: NetworkType | str = NetworkType.MAINNET) -> SigningKey:
    """
    Decode a WIF private key for the given network.

    Raises:
        MalformedInputError: If the string is not valid WIF or belongs to another network
    """
    try:
        payload = base58.b58decode_check(wif.strip())
    except ValueError as e:
        raise MalformedInputError("Invalid WIF private key encoding") from e

    if len(payload) == 34 and payload[-1] == COMPRESSED_SUFFIX:
        compressed = True
        secret = payload[1:33]
    elif len(payload) == 33:
        compressed = False
        secret = payload[1:]
    else:
        raise MalformedInputError(f"Invalid WIF private key length: {len(payload)}")

    if payload[0] != wif_prefix(network):
        raise MalformedInputError(
            f"WIF private key is not for network {NetworkType(network).value}"
        )

    try:
        private_key = PrivateKey(secret)
    except ValueError as e:
        raise MalformedInputError("WIF private key is out of range") from e

    return SigningKey(private_key=private_key, compressed=compressed)


def encode_wif(
    secret: bytes, network: NetworkType | str = NetworkType.MAINNET, compressed: bool = True
) -> str:
    payload = bytes([wif_prefix(network)]) + secret
    if compressed:
        payload += bytes([COMPRESSED_SUFFIX])
    return base58.b58encode_check(payload).decode("ascii")


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-hash> OP_EQUALVERIFY OP_CHECKSIG"""
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2wpkh_script(pubkey_hash: bytes) -> bytes:
    """OP_0 <20-byte-hash>"""
    return bytes([OP_0, 0x14]) + pubkey_hash


def p2sh_script(redeem_script: bytes) -> bytes:
    """OP_HASH160 <20-byte-script-hash> OP_EQUAL"""
    return bytes([OP_HASH160, 0x14]) + hash160(redeem_script) + bytes([OP_EQUAL])


def push_data(data: bytes) -> bytes:
    """Minimal push of up to 75 bytes (signatures, pubkeys, redeem scripts)."""
    if len(data) > 75:
        raise ValueError(f"Push of {len(data)} bytes not supported")
    return bytes([len(data)]) + data
