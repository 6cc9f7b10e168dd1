"""
Transaction signing for P2PKH, P2WPKH and P2SH-P2WPKH inputs.

All inputs are signed first and finalized afterwards, so legacy sighashes
always see empty scriptSigs on the other inputs.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass

from coincurve import PublicKey
from loguru import logger

from btcsend.constants import SIGHASH_ALL
from btcsend.errors import SigningError
from btcsend.keys import (
    SigningKey,
    decode_wif,
    hash256,
    p2pkh_script,
    p2sh_script,
    p2wpkh_script,
    push_data,
)
from btcsend.models import NetworkType, ScriptType
from btcsend.strategies import InputDescriptor
from btcsend.transaction import Transaction, TxIn, serialize_outpoint, varint


@dataclass
class InputSignature:
    signature: bytes  # DER + sighash byte
    pubkey: bytes


def compute_sighash_legacy(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """Legacy (pre-segwit) signature hash: the whole transaction with only this
    input's scriptSig replaced by the previous output script."""
    if input_index >= len(tx.inputs):
        raise SigningError("Input index out of range")

    stripped = Transaction(
        inputs=[
            TxIn(
                txid=inp.txid,
                vout=inp.vout,
                sequence=inp.sequence,
                script_sig=script_code if i == input_index else b"",
            )
            for i, inp in enumerate(tx.inputs)
        ],
        outputs=tx.outputs,
        version=tx.version,
        locktime=tx.locktime,
    )
    preimage = stripped.serialize(include_witness=False) + struct.pack("<I", sighash_type)
    return hash256(preimage)


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash for segwit v0 inputs (SIGHASH_ALL)."""
    if input_index >= len(tx.inputs):
        raise SigningError("Input index out of range")

    hash_prevouts = hash256(b"".join(serialize_outpoint(inp.txid, inp.vout) for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target_input.txid, target_input.vout)
        + varint(len(script_code))
        + script_code
        + struct.pack("<Q", value)
        + struct.pack("<I", target_input.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )
    return hash256(preimage)


def _check_key_matches(descriptor: InputDescriptor, key: SigningKey) -> None:
    """Raise SigningError unless ``key`` controls the script the input spends."""
    outpoint = descriptor.utxo.outpoint
    pubkey_hash = key.pubkey_hash

    if descriptor.script_type == ScriptType.P2PKH:
        expected = p2pkh_script(pubkey_hash)
    elif descriptor.script_type == ScriptType.P2WPKH:
        expected = p2wpkh_script(pubkey_hash)
    else:
        if descriptor.redeem_script != p2wpkh_script(pubkey_hash):
            raise SigningError(f"Input {outpoint}: redeem script does not match key")
        expected = p2sh_script(descriptor.redeem_script)

    if descriptor.prevout_script != expected:
        raise SigningError(
            f"Input {outpoint}: key does not match previous output script "
            f"{descriptor.prevout_script.hex()}"
        )


def sign_input(
    tx: Transaction, input_index: int, descriptor: InputDescriptor, key: SigningKey
) -> InputSignature:
    """
    Sign one input with its key.

    Args:
        tx: The unsigned transaction
        input_index: Index of the input to sign
        descriptor: How the input's previous output is locked
        key: Decoded key of the UTXO being spent

    Returns:
        Signature (DER-encoded, sighash type byte appended) and the public key
    """
    _check_key_matches(descriptor, key)

    # For all three types the scriptCode is the P2PKH script of the key
    script_code = p2pkh_script(key.pubkey_hash)
    if descriptor.script_type == ScriptType.P2PKH:
        sighash = compute_sighash_legacy(tx, input_index, script_code)
    else:
        sighash = compute_sighash_segwit(tx, input_index, script_code, descriptor.value)

    try:
        # sighash is already SHA256d; hasher=None skips hashing
        signature = key.private_key.sign(sighash, hasher=None)
    except Exception as e:
        raise SigningError(f"Failed to sign input {descriptor.utxo.outpoint}: {e}") from e

    pubkey = key.public_key_bytes
    if not PublicKey(pubkey).verify(signature, sighash, hasher=None):
        raise SigningError(f"Signature for input {descriptor.utxo.outpoint} does not verify")

    return InputSignature(signature=signature + bytes([SIGHASH_ALL]), pubkey=pubkey)


def finalize_input(inp: TxIn, descriptor: InputDescriptor, sig: InputSignature) -> None:
    """Write the final scriptSig and witness for a signed input."""
    if descriptor.script_type == ScriptType.P2PKH:
        inp.script_sig = push_data(sig.signature) + push_data(sig.pubkey)
        inp.witness = []
    elif descriptor.script_type == ScriptType.P2WPKH:
        inp.script_sig = b""
        inp.witness = [sig.signature, sig.pubkey]
    else:
        if descriptor.redeem_script is None:
            raise SigningError(f"Input {descriptor.utxo.outpoint} has no redeem script")
        inp.script_sig = push_data(descriptor.redeem_script)
        inp.witness = [sig.signature, sig.pubkey]


def sign_transaction(
    tx: Transaction,
    descriptors: Sequence[InputDescriptor],
    network: NetworkType | str = NetworkType.MAINNET,
) -> Transaction:
    """
    Sign and finalize every input in place, input i with the key of UTXO i.

    Raises:
        SigningError: If a key does not match its input or signing fails
    """
    if len(descriptors) != len(tx.inputs):
        raise SigningError(f"Have {len(descriptors)} input descriptors for {len(tx.inputs)} inputs")

    signatures: list[InputSignature] = []
    for index, descriptor in enumerate(descriptors):
        key = decode_wif(descriptor.utxo.key.get_secret_value(), network)
        signatures.append(sign_input(tx, index, descriptor, key))
        logger.debug(f"Signed input {index} ({descriptor.utxo.outpoint})")

    for inp, descriptor, sig in zip(tx.inputs, descriptors, signatures, strict=True):
        finalize_input(inp, descriptor, sig)

    logger.debug(f"Finalized {len(tx.inputs)} input(s), vsize {tx.virtual_size}")
    return tx
