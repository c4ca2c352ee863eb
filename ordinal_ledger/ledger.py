"""Pipeline-facing facade over the transaction, output, and index stores.

Block crawlers drive the ledger in three passes: record a block's
transactions, record each transaction's outputs once, then attach
inscriptions as they are detected. Reorg handling rolls a block back by
dropping its transaction map.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .kv import KeyValueStore
from .model import Output, Transaction
from .output_index import TransactionOutputIndex
from .outputs import OutputStore
from .transactions import TransactionStore

logger = logging.getLogger(__name__)


class OrdinalLedger:
    """Compose the ledger stores over a single key-value backend."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.transactions = TransactionStore(store)
        self.output_index = TransactionOutputIndex(store)
        self.outputs = OutputStore(store, self.output_index)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "OrdinalLedger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def record_block(self, transactions: Iterable[Transaction]) -> None:
        self.transactions.upsert_transactions(transactions)

    def record_outputs(self, transaction: Transaction, outputs: Iterable[Output]) -> bool:
        """Store *outputs* unless the transaction's outputs were already fetched.

        Returns ``True`` when the outputs were written and the transaction was
        flagged as fetched.
        """

        if self.transactions.get_outputs_already_fetched(transaction):
            logger.debug("Outputs for %s already fetched; skipping", transaction.hash)
            return False
        self.outputs.update_outputs(transaction, outputs)
        self.transactions.set_outputs_fetched(transaction)
        return True

    def block_transactions(self, block_number: int) -> list[Transaction]:
        return self.transactions.get_transactions_for_block(block_number)

    def get_output(self, output_hash: str, should_exist: bool = False) -> Output | None:
        return self.outputs.get_output(output_hash, should_exist=should_exist)

    def outputs_for_transaction(self, tx_hash: str) -> list[Output]:
        """Resolve every indexed output of *tx_hash*, ordered by output index."""

        resolved = [
            self.outputs.get_output(output_hash, should_exist=True)
            for output_hash in self.output_index.get_tx_output_hashes(tx_hash)
        ]
        return sorted(resolved, key=lambda output: output.index)

    def attach_inscription(self, output_hash: str, inscription_id: str) -> Output:
        output = self.outputs.get_output(output_hash, should_exist=True)
        self.outputs.set_inscription_on_output(output, inscription_id)
        logger.info("Attached inscription %s to output %s", inscription_id, output.hash)
        return self.outputs.get_output(output_hash, should_exist=True)

    def rollback_block(self, block_number: int) -> int:
        return self.transactions.delete_transactions_for_block(block_number)

