"""Block-scoped transaction records.

Each block owns one hash map whose fields are transaction hashes. Records are
create-only: once a transaction has been written for a block, later inserts
leave it untouched. The ``outputs_fetched`` flag is the one field mutated in
place afterwards.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .kv import KeyValueStore
from .model import Transaction
from .schema import block_key, decode_transaction, dump_record, encode_transaction, load_record

logger = logging.getLogger(__name__)


def _sort_key(transaction: Transaction) -> tuple[int, int, str]:
    # Records written only through ``set_outputs_fetched`` carry no index.
    if transaction.index is None:
        return (1, 0, transaction.hash)
    return (0, int(transaction.index), transaction.hash)


class TransactionStore:
    """Read and write transaction records grouped by block number."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def upsert_transactions(self, transactions: Iterable[Transaction]) -> None:
        """Create a record for every transaction that has none in its block yet."""

        created = 0
        skipped = 0
        for transaction in transactions:
            was_written = self.store.hsetnx(
                block_key(transaction.block_number),
                transaction.hash,
                encode_transaction(transaction),
            )
            if was_written:
                created += 1
            else:
                skipped += 1
                logger.debug(
                    "Transaction %s already recorded for block %s; leaving it untouched",
                    transaction.hash,
                    transaction.block_number,
                )
        logger.debug("Upserted transactions: %d created, %d already present", created, skipped)

    def get_transactions_for_block(self, block_number: int) -> list[Transaction]:
        """Return every transaction of *block_number* sorted by its index in the block.

        Inputs come back with ``block_number`` and ``transaction_hash``
        re-attached.
        """

        entries = self.store.hgetall(block_key(block_number))
        transactions = [
            decode_transaction(int(block_number), tx_hash, raw) for tx_hash, raw in entries.items()
        ]
        transactions.sort(key=_sort_key)
        return transactions

    def set_outputs_fetched(self, transaction: Transaction) -> None:
        key = block_key(transaction.block_number)
        with self.store.lock(key):
            existing = self.store.hget(key, transaction.hash)
            record = load_record(existing) if existing else {}
            record["outputs_fetched"] = True
            self.store.hset(key, transaction.hash, dump_record(record))

    def get_outputs_already_fetched(self, transaction: Transaction) -> bool:
        existing = self.store.hget(block_key(transaction.block_number), transaction.hash)
        if not existing:
            return False
        return bool(load_record(existing).get("outputs_fetched", False))

    def delete_transactions_for_block(self, block_number: int) -> int:
        """Remove every transaction record of *block_number* and return how many went away.

        Output records and transaction output indexes are kept.
        """

        key = block_key(block_number)
        tx_hashes = self.store.hkeys(key)
        removed = self.store.hdel(key, tx_hashes) if tx_hashes else 0
        logger.info("Deleted %d transactions for block %s", removed, block_number)
        return removed

