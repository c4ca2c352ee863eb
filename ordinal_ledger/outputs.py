"""Output records and the inscriptions attached to them."""

from __future__ import annotations

import logging
from typing import Iterable

from .kv import KeyValueStore
from .model import LedgerError, Output, Transaction, make_output_hash, parse_output_hash
from .output_index import TransactionOutputIndex
from .schema import decode_output, dump_record, encode_output, load_record, output_key

logger = logging.getLogger(__name__)


class OutputIntegrityError(LedgerError):
    """Raised when an output hash does not belong to the transaction it is written for."""


class OutputNotFoundError(LedgerError, KeyError):
    """Raised when an output that must exist has no record."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class OutputStore:
    """Persist outputs under ``o:<txhash>:<index>`` and keep the transaction index current."""

    def __init__(self, store: KeyValueStore, output_index: TransactionOutputIndex | None = None) -> None:
        self.store = store
        self.output_index = output_index or TransactionOutputIndex(store)

    def update_outputs(self, transaction: Transaction, outputs: Iterable[Output]) -> None:
        """Write *outputs* for *transaction*, replacing any earlier record.

        The replacement is a full overwrite: inscriptions attached to a
        previous version of the output are not carried over.
        """

        for output in outputs:
            tx_hash, index = parse_output_hash(output.hash)
            if tx_hash.lower() != transaction.hash.lower():
                raise OutputIntegrityError(
                    f"Output hash {output.hash} does not match transaction hash {transaction.hash}"
                )

            # Record key and index entry must rebuild to the same hash.
            output_hash = make_output_hash(tx_hash, index)
            self.store.set(output_key(output_hash), encode_output(transaction, output))
            self.output_index.register(transaction.hash, index)
            logger.debug("Stored output %s for block %s", output_hash, transaction.block_number)

    def get_output(self, output_hash: str, should_exist: bool = False) -> Output | None:
        raw = self.store.get(output_key(output_hash))
        if raw is None:
            if should_exist:
                raise OutputNotFoundError(f"Output {output_hash} not found")
            return None
        return decode_output(output_hash, raw)

    def set_inscription_on_output(self, output: Output, inscription_id: str) -> None:
        """Append *inscription_id* to the inscriptions recorded for *output*."""

        key = output_key(output.hash)
        with self.store.lock(key):
            existing = self.store.get(key)
            if existing is None:
                raise OutputNotFoundError(f"Output {output.hash} does not exist")
            record = load_record(existing)
            inscriptions = list(record.get("inscriptions") or [])
            inscriptions.append(inscription_id)
            record["inscriptions"] = inscriptions
            self.store.set(key, dump_record(record))

