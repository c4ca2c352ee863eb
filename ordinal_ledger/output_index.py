"""Ordered association between a transaction hash and its output indexes."""

from __future__ import annotations

import logging

from .kv import KeyValueStore
from .model import make_output_hash
from .schema import stored_output_index, tx_outputs_key

logger = logging.getLogger(__name__)


class TransactionOutputIndex:
    """List of output indexes stored under ``tx:<txhash>:outputs``."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _indexes(self, tx_hash: str) -> list[str]:
        raw_indexes = self.store.lrange(tx_outputs_key(tx_hash), 0, -1)
        return [stored_output_index(raw) for raw in raw_indexes]

    def register(self, tx_hash: str, index: int | str) -> bool:
        """Append *index* for *tx_hash* unless it is already listed.

        Returns ``True`` when the index was appended.
        """

        key = tx_outputs_key(tx_hash)
        entry = str(index)
        with self.store.lock(key):
            if entry in self._indexes(tx_hash):
                logger.error(
                    "Output %s already exists in transaction %s",
                    make_output_hash(tx_hash, entry),
                    tx_hash,
                )
                return False
            self.store.rpush(key, entry)
        return True

    def get_tx_output_hashes(self, tx_hash: str) -> list[str]:
        """Return the distinct output hashes recorded for *tx_hash*.

        Duplicate entries are logged and dropped; the first occurrence wins.
        """

        output_hashes = [make_output_hash(tx_hash, index) for index in self._indexes(tx_hash)]
        unique_hashes = list(dict.fromkeys(output_hashes))
        if len(unique_hashes) != len(output_hashes):
            seen: set[str] = set()
            duplicates = []
            for output_hash in output_hashes:
                if output_hash in seen:
                    duplicates.append(output_hash)
                seen.add(output_hash)
            logger.error(
                "Duplicate output hashes found for transaction %s: %s",
                tx_hash,
                ", ".join(duplicates),
            )
        return unique_hashes

