"""
Unit tests for the in-memory key-value store.
"""

import threading

import pytest

from kvserver.store import KeyValueStore


class TestKeyValueStore:
    """Single-threaded behaviour."""

    def test_new_store_is_empty(self, store: KeyValueStore):
        assert store.list() == {}
        assert len(store) == 0

    def test_get_missing_returns_none(self, store: KeyValueStore):
        assert store.get("never-written") is None

    def test_set_then_get(self, store: KeyValueStore):
        store.set("color", "red")

        assert store.get("color") == "red"

    def test_set_replaces(self, store: KeyValueStore):
        store.set("color", "red")
        store.set("color", "blue")

        assert store.get("color") == "blue"
        assert len(store) == 1

    def test_set_is_idempotent(self, store: KeyValueStore):
        store.set("k", "v")
        before = store.list()
        store.set("k", "v")

        assert store.list() == before

    def test_empty_value_distinct_from_missing(self, store: KeyValueStore):
        store.set("blank", "")

        assert store.get("blank") == ""
        assert store.get("absent") is None

    def test_list_contains_every_entry_once(self, store: KeyValueStore):
        store.set("a", "1")
        store.set("b", "2")

        assert store.list() == {"a": "1", "b": "2"}

    def test_list_returns_copy(self, store: KeyValueStore):
        store.set("a", "1")

        snapshot = store.list()
        snapshot["a"] = "changed"
        snapshot["b"] = "added"

        assert store.list() == {"a": "1"}

    def test_snapshot_unaffected_by_later_writes(self, store: KeyValueStore):
        store.set("a", "1")
        snapshot = store.list()
        store.set("b", "2")

        assert snapshot == {"a": "1"}

    def test_arbitrary_strings(self, store: KeyValueStore):
        store.set("key with spaces", "välue/ünïcode")

        assert store.get("key with spaces") == "välue/ünïcode"

    def test_stores_are_independent(self):
        first, second = KeyValueStore(), KeyValueStore()
        first.set("a", "1")

        assert second.get("a") is None

    def test_repr(self, store: KeyValueStore):
        store.set("a", "1")

        assert repr(store) == "<KeyValueStore entries=1>"


class TestKeyValueStoreConcurrency:
    """Behaviour under concurrent access."""

    def test_concurrent_writers_last_wins(self, store: KeyValueStore):
        barrier = threading.Barrier(2)

        def write(value):
            barrier.wait()
            store.set("k", value)

        threads = [threading.Thread(target=write, args=(v,)) for v in ("A", "B")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get("k") in ("A", "B")
        assert store.list() == {"k": store.get("k")}

    def test_many_writers_distinct_keys(self, store: KeyValueStore):
        def write(n):
            for i in range(100):
                store.set(f"w{n}-{i}", str(i))

        threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 800
        assert store.get("w7-99") == "99"

    def test_readers_never_see_partial_state(self, store: KeyValueStore):
        """Every snapshot taken during writes holds a prefix of the writes."""
        stop = threading.Event()
        errors = []

        def read():
            while not stop.is_set():
                snapshot = store.list()
                n = len(snapshot)
                if set(snapshot) != {f"k{i}" for i in range(n)}:
                    errors.append(snapshot)

        readers = [threading.Thread(target=read) for _ in range(4)]
        for t in readers:
            t.start()

        for i in range(500):
            store.set(f"k{i}", str(i))

        stop.set()
        for t in readers:
            t.join()

        assert errors == []
        assert len(store) == 500

    @pytest.mark.parametrize("rounds", [3])
    def test_write_visible_to_other_threads(self, store: KeyValueStore, rounds: int):
        for i in range(rounds):
            store.set("shared", str(i))
            seen = []
            t = threading.Thread(target=lambda: seen.append(store.get("shared")))
            t.start()
            t.join()

            assert seen == [str(i)]
