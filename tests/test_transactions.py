from __future__ import annotations

import threading

import pytest

from ordinal_ledger.model import Transaction
from ordinal_ledger.transactions import TransactionStore


def _transaction(tx_hash: str, index: int, block_number: int = 800000, inputs: list | None = None) -> Transaction:
    return Transaction(
        hash=tx_hash,
        block_number=block_number,
        index=index,
        timestamp=1700000000 + index,
        inputs=inputs if inputs is not None else [],
    )


@pytest.fixture
def tx_store(kv_store) -> TransactionStore:
    return TransactionStore(kv_store)


def test_upsert_is_create_only(tx_store, kv_store) -> None:
    first = _transaction("aa", 0, inputs=[{"previous_output": "ff:0"}])
    tx_store.upsert_transactions([first])
    stored_after_first = kv_store.hget("800000", "aa")

    changed = _transaction("aa", 7, inputs=[{"previous_output": "ee:9"}])
    tx_store.upsert_transactions([changed])

    assert kv_store.hget("800000", "aa") == stored_after_first
    [read_back] = tx_store.get_transactions_for_block(800000)
    assert read_back.index == 0
    assert read_back.inputs[0]["previous_output"] == "ff:0"


def test_upsert_keeps_outputs_fetched_flag(tx_store) -> None:
    transaction = _transaction("aa", 0)
    tx_store.upsert_transactions([transaction])
    tx_store.set_outputs_fetched(transaction)

    tx_store.upsert_transactions([transaction])

    assert tx_store.get_outputs_already_fetched(transaction) is True


def test_inputs_are_enriched_on_read(tx_store) -> None:
    inputs = [
        {"previous_output": f"ff:{n}", "transaction_hash": "stale", "block_number": 1}
        for n in range(3)
    ]
    tx_store.upsert_transactions([_transaction("aa", 0, inputs=inputs)])

    [transaction] = tx_store.get_transactions_for_block(800000)

    assert [item["previous_output"] for item in transaction.inputs] == ["ff:0", "ff:1", "ff:2"]
    for item in transaction.inputs:
        assert item["transaction_hash"] == "aa"
        assert item["block_number"] == 800000
    assert transaction.hash == "aa"
    assert transaction.block_number == 800000
    assert transaction.outputs_fetched is False


def test_block_read_sorts_by_index(tx_store) -> None:
    tx_store.upsert_transactions([_transaction("c", 2), _transaction("a", 0), _transaction("b", 1)])

    transactions = tx_store.get_transactions_for_block(800000)

    assert [tx.index for tx in transactions] == [0, 1, 2]
    assert [tx.hash for tx in transactions] == ["a", "b", "c"]


def test_blocks_are_isolated(tx_store) -> None:
    tx_store.upsert_transactions([_transaction("a", 0, block_number=1), _transaction("b", 0, block_number=2)])

    assert [tx.hash for tx in tx_store.get_transactions_for_block(1)] == ["a"]
    assert [tx.hash for tx in tx_store.get_transactions_for_block(2)] == ["b"]
    assert tx_store.get_transactions_for_block(3) == []


def test_outputs_fetched_flag_transitions(tx_store) -> None:
    transaction = _transaction("aa", 0)

    assert tx_store.get_outputs_already_fetched(transaction) is False
    tx_store.upsert_transactions([transaction])
    assert tx_store.get_outputs_already_fetched(transaction) is False

    tx_store.set_outputs_fetched(transaction)

    assert tx_store.get_outputs_already_fetched(transaction) is True
    other = _transaction("bb", 1)
    tx_store.upsert_transactions([other])
    assert tx_store.get_outputs_already_fetched(other) is False


def test_set_outputs_fetched_preserves_record(tx_store) -> None:
    transaction = _transaction("aa", 3, inputs=[{"previous_output": "ff:0"}])
    tx_store.upsert_transactions([transaction])

    tx_store.set_outputs_fetched(transaction)

    [read_back] = tx_store.get_transactions_for_block(800000)
    assert read_back.index == 3
    assert read_back.timestamp == transaction.timestamp
    assert read_back.inputs[0]["previous_output"] == "ff:0"
    assert read_back.outputs_fetched is True


def test_set_outputs_fetched_without_record_creates_bare_entry(tx_store) -> None:
    transaction = _transaction("zz", 0)

    tx_store.set_outputs_fetched(transaction)

    assert tx_store.get_outputs_already_fetched(transaction) is True
    [read_back] = tx_store.get_transactions_for_block(800000)
    assert read_back.hash == "zz"
    assert read_back.index is None
    assert read_back.inputs == []


def test_bare_entries_sort_after_indexed_ones(tx_store) -> None:
    tx_store.set_outputs_fetched(_transaction("bare", 0))
    tx_store.upsert_transactions([_transaction("x", 1), _transaction("y", 0)])

    assert [tx.hash for tx in tx_store.get_transactions_for_block(800000)] == ["y", "x", "bare"]


def test_delete_transactions_for_block(tx_store) -> None:
    tx_store.upsert_transactions([_transaction("a", 0), _transaction("b", 1)])
    tx_store.upsert_transactions([_transaction("keep", 0, block_number=800001)])

    removed = tx_store.delete_transactions_for_block(800000)

    assert removed == 2
    assert tx_store.get_transactions_for_block(800000) == []
    assert [tx.hash for tx in tx_store.get_transactions_for_block(800001)] == ["keep"]
    assert tx_store.delete_transactions_for_block(800000) == 0


def test_concurrent_flag_updates_keep_every_record(tx_store) -> None:
    transactions = [_transaction(f"tx{n}", n, inputs=[{"previous_output": f"ff:{n}"}]) for n in range(8)]
    tx_store.upsert_transactions(transactions)

    threads = [
        threading.Thread(target=tx_store.set_outputs_fetched, args=(transaction,))
        for transaction in transactions
        for _ in range(3)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    read_back = tx_store.get_transactions_for_block(800000)
    assert [tx.hash for tx in read_back] == [f"tx{n}" for n in range(8)]
    assert all(tx.outputs_fetched for tx in read_back)
    assert [tx.inputs[0]["previous_output"] for tx in read_back] == [f"ff:{n}" for n in range(8)]
