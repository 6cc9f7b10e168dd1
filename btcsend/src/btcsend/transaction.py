"""
Bitcoin transaction structure, serialization and parsing.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from btcsend.constants import TX_LOCKTIME, TX_VERSION, WITNESS_SCALE_FACTOR
from btcsend.keys import hash256


class TransactionParseError(ValueError):
    pass


@dataclass
class TxIn:
    txid: str  # RPC (big-endian) hex
    vout: int
    sequence: int
    script_sig: bytes = b""
    witness: list[bytes] = field(default_factory=list)

    def serialize(self) -> bytes:
        return (
            serialize_outpoint(self.txid, self.vout)
            + varint(len(self.script_sig))
            + self.script_sig
            + struct.pack("<I", self.sequence)
        )


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<Q", self.value) + varint(len(self.script_pubkey)) + self.script_pubkey


@dataclass
class Transaction:
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)
    version: int = TX_VERSION
    locktime: int = TX_LOCKTIME

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize to bytes, using the BIP144 layout when any input has a witness."""
        segwit = include_witness and self.has_witness

        result = struct.pack("<I", self.version)
        if segwit:
            result += bytes([0x00, 0x01])  # SegWit marker and flag

        result += varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.serialize()

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if segwit:
            for inp in self.inputs:
                result += varint(len(inp.witness))
                for item in inp.witness:
                    result += varint(len(item)) + item

        result += struct.pack("<I", self.locktime)
        return result

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, in RPC byte order."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize())
        return base_size * (WITNESS_SCALE_FACTOR - 1) + total_size

    @property
    def virtual_size(self) -> int:
        return -(-self.weight // WITNESS_SCALE_FACTOR)

    @classmethod
    def from_hex(cls, tx_hex: str) -> Transaction:
        try:
            tx_bytes = bytes.fromhex(tx_hex.strip())
        except ValueError as e:
            raise TransactionParseError(f"Transaction is not valid hex: {e}") from e
        return deserialize_transaction(tx_bytes)


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in RPC format (big-endian), need to reverse for raw tx
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, n: int) -> bytes:
        if self.offset + n > len(self.data):
            raise TransactionParseError(
                f"Unexpected end of transaction at offset {self.offset} (wanted {n} bytes)"
            )
        chunk = self.data[self.offset : self.offset + n]
        self.offset += n
        return chunk

    def read_varint(self) -> int:
        first = self.read(1)[0]
        if first < 0xFD:
            return first
        if first == 0xFD:
            return struct.unpack("<H", self.read(2))[0]
        if first == 0xFE:
            return struct.unpack("<I", self.read(4))[0]
        return struct.unpack("<Q", self.read(8))[0]

    def read_uint32(self) -> int:
        return struct.unpack("<I", self.read(4))[0]

    def peek(self, n: int) -> bytes:
        return self.data[self.offset : self.offset + n]


def deserialize_transaction(tx_bytes: bytes) -> Transaction:
    """
    Parse a raw transaction, with or without witness data.

    Raises:
        TransactionParseError: If the bytes are truncated or carry trailing data
    """
    reader = _Reader(tx_bytes)
    version = reader.read_uint32()

    segwit = reader.peek(2) == b"\x00\x01"
    if segwit:
        reader.read(2)

    inputs: list[TxIn] = []
    for _ in range(reader.read_varint()):
        txid = reader.read(32)[::-1].hex()
        vout = reader.read_uint32()
        script_sig = reader.read(reader.read_varint())
        sequence = reader.read_uint32()
        inputs.append(TxIn(txid=txid, vout=vout, sequence=sequence, script_sig=script_sig))

    outputs: list[TxOut] = []
    for _ in range(reader.read_varint()):
        value = struct.unpack("<Q", reader.read(8))[0]
        script_pubkey = reader.read(reader.read_varint())
        outputs.append(TxOut(value=value, script_pubkey=script_pubkey))

    if segwit:
        for inp in inputs:
            inp.witness = [reader.read(reader.read_varint()) for _ in range(reader.read_varint())]

    locktime = reader.read_uint32()
    if reader.offset != len(tx_bytes):
        raise TransactionParseError(
            f"{len(tx_bytes) - reader.offset} trailing bytes after locktime"
        )

    return Transaction(inputs=inputs, outputs=outputs, version=version, locktime=locktime)
