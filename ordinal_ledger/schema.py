"""Key layout and per-entity record encoding for the flat key-value store.

Every key the ledger touches is built here, and every record is serialized
through the field codec here, so the read and write paths cannot drift apart.

==========================  =============================  ==================
Namespace                   Key                            Value
==========================  =============================  ==================
transactions of a block     ``<block number>`` (hash map)  field per tx hash
output record               ``o:<txhash>:<index>``         JSON object
transaction output index    ``tx:<txhash>:outputs``        list of indexes
==========================  =============================  ==================
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from .codec import decode_fields, encode_fields, token_for
from .model import REDUNDANT_INPUT_FIELDS, Output, Transaction, canonical_output_hash

COMPACT_JSON_SEPARATORS = (",", ":")
TX_OUTPUTS_PREFIX = "tx"
TX_OUTPUTS_SUFFIX = "outputs"


def block_key(block_number: int) -> str:
    return str(int(block_number))


def output_key(output_hash: str) -> str:
    return f"{token_for('outputs')}:{canonical_output_hash(output_hash)}"


def tx_outputs_key(tx_hash: str) -> str:
    return f"{TX_OUTPUTS_PREFIX}:{tx_hash.lower()}:{TX_OUTPUTS_SUFFIX}"


def dump_record(values: Mapping[str, Any]) -> str:
    """Serialize semantic *values* to compact JSON using codec tokens.

    ``None`` values are dropped so optional fields stay absent on disk.
    """

    present = {name: value for name, value in values.items() if value is not None}
    return json.dumps(encode_fields(present), separators=COMPACT_JSON_SEPARATORS)


def load_record(raw: str | bytes) -> dict[str, Any]:
    """Parse a stored record into a mapping keyed by semantic field names."""

    loaded = json.loads(raw)
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected a JSON object record, got {type(loaded).__name__}")
    return decode_fields(loaded)


def strip_input(tx_input: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in tx_input.items() if key not in REDUNDANT_INPUT_FIELDS}


def encode_transaction(transaction: Transaction) -> str:
    return dump_record(
        {
            "index": transaction.index,
            "timestamp": transaction.timestamp,
            "inputs": [strip_input(tx_input) for tx_input in transaction.inputs or []],
        }
    )


def decode_transaction(block_number: int, tx_hash: str, raw: str | bytes) -> Transaction:
    """Rebuild a transaction from its block-map entry, enriching its inputs."""

    record = load_record(raw)
    inputs = [
        {**tx_input, "block_number": block_number, "transaction_hash": tx_hash}
        for tx_input in record.get("inputs") or []
    ]
    return Transaction(
        hash=tx_hash,
        block_number=block_number,
        index=record.get("index"),
        timestamp=record.get("timestamp"),
        inputs=inputs,
        outputs_fetched=bool(record.get("outputs_fetched", False)),
    )


def encode_output(transaction: Transaction, output: Output) -> str:
    address = output.address.lower() if output.address else None
    return dump_record(
        {
            "index": output.index,
            "address": address,
            "block_number": transaction.block_number,
            "transaction_index": transaction.index,
            "value": output.value,
        }
    )


def decode_output(output_hash: str, raw: str | bytes) -> Output:
    record = load_record(raw)
    return Output(
        hash=canonical_output_hash(output_hash),
        value=record.get("value"),
        address=record.get("address"),
        block_number=record.get("block_number"),
        transaction_index=record.get("transaction_index"),
        inscriptions=list(record.get("inscriptions") or []),
    )


def stored_output_index(raw: str | bytes | None) -> str | None:
    """Return an index list entry as text; backends may hand back bytes."""

    if raw is None:
        return None
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return str(raw)

