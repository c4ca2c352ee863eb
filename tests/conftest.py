from __future__ import annotations

from typing import Iterator

import pytest

from ordinal_ledger.kv import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore


@pytest.fixture(params=["memory", "sqlite"])
def kv_store(request, tmp_path) -> Iterator[KeyValueStore]:
    if request.param == "memory":
        store: KeyValueStore = InMemoryKeyValueStore()
    else:
        store = SQLiteKeyValueStore(tmp_path / "ledger.sqlite")
    yield store
    store.close()
