"""
Parsing of the caller's UTXO and payment lists.

UTXO entries are separated by ``|`` and their fields by ``,``. Two entry forms
are accepted:

- positional: ``<txid>:<vout>,<value>,<wif>``
- keyed: ``txid:<txid>, vout:<vout>, value:<value>, wif:<wif>`` in any order
  (``=`` may replace ``:`` after a field name, ``key`` is accepted for ``wif``,
  and ``txid:<txid>:<vout>`` may replace the separate ``vout`` field)

Duplicate outpoints are not rejected; avoiding double spends is the caller's
responsibility.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError

from btcsend.errors import MalformedInputError
from btcsend.models import PaymentRequest, UtxoRecord

UTXO_SEPARATOR = "|"
FIELD_SEPARATOR = ","
OUTPOINT_SEPARATOR = ":"

_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_KEY_ALIASES = {"txid": "txid", "vout": "vout", "value": "value", "key": "key", "wif": "key"}
_KEYED_FIELD_RE = re.compile(
    r"^\s*(txid|vout|value|key|wif)\s*[:=]\s*(.*?)\s*$", re.IGNORECASE | re.DOTALL
)


def parse_int(value: Any, field: str) -> int:
    """Parse a non-negative integer given as int or decimal string."""
    if isinstance(value, bool):
        raise MalformedInputError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and re.fullmatch(r"\s*\d+\s*", value):
        result = int(value)
    else:
        raise MalformedInputError(f"{field} must be a non-negative integer, got {value!r}")
    if result < 0:
        raise MalformedInputError(f"{field} must be non-negative, got {result}")
    return result


def parse_bool(value: Any) -> bool:
    """Flags arrive either as JSON booleans or as the strings "true"/"false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _split_outpoint(field: str) -> tuple[str, str]:
    txid, sep, vout = field.strip().partition(OUTPOINT_SEPARATOR)
    if not sep:
        raise MalformedInputError(f"Expected txid:vout, got {field!r}")
    return txid.strip(), vout.strip()


def _parse_positional(fields: list[str]) -> dict[str, str]:
    if len(fields) != 3:
        raise MalformedInputError(
            f"UTXO entry must have 3 fields (txid:vout,value,key), got {len(fields)}"
        )
    txid, vout = _split_outpoint(fields[0])
    return {"txid": txid, "vout": vout, "value": fields[1].strip(), "key": fields[2].strip()}


def _parse_keyed(fields: list[str]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for field in fields:
        match = _KEYED_FIELD_RE.match(field)
        if match is None:
            raise MalformedInputError(f"Unknown UTXO field: {field.strip()!r}")
        name, value = match.group(1).lower(), match.group(2)
        canonical = _KEY_ALIASES[name]
        if canonical in parsed:
            raise MalformedInputError(f"Duplicate UTXO field: {name}")
        parsed[canonical] = value

    if OUTPOINT_SEPARATOR in parsed.get("txid", "") and "vout" not in parsed:
        parsed["txid"], parsed["vout"] = _split_outpoint(parsed["txid"])

    if set(parsed) != {"txid", "vout", "value", "key"}:
        missing = sorted({"txid", "vout", "value", "key"} - set(parsed))
        raise MalformedInputError(f"UTXO entry missing fields: {', '.join(missing)}")
    return parsed


def parse_utxo_entry(entry: str) -> UtxoRecord:
    fields = entry.split(FIELD_SEPARATOR)
    if any(_KEYED_FIELD_RE.match(field) for field in fields):
        raw = _parse_keyed(fields)
    else:
        raw = _parse_positional(fields)

    if not raw["txid"]:
        raise MalformedInputError("UTXO txid is empty")
    if not _TXID_RE.match(raw["txid"]):
        raise MalformedInputError(f"UTXO txid must be 64 hex characters: {raw['txid']!r}")
    if not raw["key"]:
        raise MalformedInputError(f"UTXO {raw['txid']}:{raw['vout']} has no key")

    vout = parse_int(raw["vout"], "vout")
    value = parse_int(raw["value"], "value")
    if value == 0:
        raise MalformedInputError(f"UTXO {raw['txid']}:{vout} has zero value")

    try:
        return UtxoRecord(txid=raw["txid"].lower(), vout=vout, value=value, key=raw["key"])
    except ValidationError as e:
        raise MalformedInputError(f"Invalid UTXO entry: {e}") from e


def parse_utxos(utxos_string: str) -> list[UtxoRecord]:
    """
    Parse the serialized UTXO list into records, preserving order.

    Raises:
        MalformedInputError: If any entry fails to parse or the list is empty
    """
    if not utxos_string or not utxos_string.strip():
        raise MalformedInputError("UTXO list is empty")

    return [parse_utxo_entry(entry) for entry in utxos_string.strip().split(UTXO_SEPARATOR)]


def parse_payments(recipients: str, amounts: str) -> list[PaymentRequest]:
    """
    Pair comma-separated recipient addresses with comma-separated amounts.

    A single address and amount is the one-element case of the list form.
    """
    addresses = [address.strip() for address in recipients.split(FIELD_SEPARATOR)]
    values = [amount.strip() for amount in amounts.split(FIELD_SEPARATOR)]

    if len(addresses) != len(values):
        raise MalformedInputError(
            f"Got {len(addresses)} recipient address(es) but {len(values)} amount(s)"
        )
    if any(not address for address in addresses):
        raise MalformedInputError("Recipient address is empty")

    payments = []
    for address, raw_amount in zip(addresses, values, strict=True):
        amount = parse_int(raw_amount, "amountToSend")
        if amount == 0:
            raise MalformedInputError(f"Payment to {address} must be a positive amount")
        try:
            payments.append(PaymentRequest(address=address, amount=amount))
        except ValidationError as e:
            raise MalformedInputError(f"Invalid payment to {address}: {e}") from e
    return payments
