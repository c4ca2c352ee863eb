"""Ordinal ledger: transactions, outputs, and inscriptions over a flat key-value store."""

from .codec import FIELD_TOKENS, decode_fields, encode_fields
from .config import ConfigurationError, LedgerConfig, load_ledger_config
from .kv import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore, create_key_value_store
from .ledger import OrdinalLedger
from .model import (
    InvalidOutputHashError,
    LedgerError,
    Output,
    Transaction,
    canonical_output_hash,
    parse_output_hash,
)
from .output_index import TransactionOutputIndex
from .outputs import OutputIntegrityError, OutputNotFoundError, OutputStore
from .transactions import TransactionStore

__all__ = [
    "ConfigurationError",
    "FIELD_TOKENS",
    "InMemoryKeyValueStore",
    "InvalidOutputHashError",
    "KeyValueStore",
    "LedgerConfig",
    "LedgerError",
    "OrdinalLedger",
    "Output",
    "OutputIntegrityError",
    "OutputNotFoundError",
    "OutputStore",
    "SQLiteKeyValueStore",
    "Transaction",
    "TransactionOutputIndex",
    "TransactionStore",
    "canonical_output_hash",
    "create_key_value_store",
    "decode_fields",
    "encode_fields",
    "load_ledger_config",
    "parse_output_hash",
]
