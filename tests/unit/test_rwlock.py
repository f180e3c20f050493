"""
Unit tests for the reader/writer lock.
"""

import threading
import time

import pytest

from kvserver.core.rwlock import ReadWriteLock


class TestReadWriteLock:

    def test_readers_share(self):
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=2.0)

        def reader():
            with lock.read_locked():
                both_inside.wait()  # only passes if both hold the lock at once

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert lock.readers == 0

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []

        lock.acquire_write()

        def reader():
            with lock.read_locked():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.1)
        events.append("write-done")
        lock.release_write()
        t.join(timeout=2.0)

        assert events == ["write-done", "read"]

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        events = []

        lock.acquire_read()

        def writer():
            with lock.write_locked():
                events.append("write")

        t = threading.Thread(target=writer)
        t.start()
        time.sleep(0.1)
        events.append("read-done")
        lock.release_read()
        t.join(timeout=2.0)

        assert events == ["read-done", "write"]

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        events = []

        lock.acquire_read()

        def writer():
            with lock.write_locked():
                events.append("write")

        def late_reader():
            with lock.read_locked():
                events.append("late-read")

        w = threading.Thread(target=writer)
        w.start()
        time.sleep(0.1)  # writer is now queued behind the first reader

        r = threading.Thread(target=late_reader)
        r.start()
        time.sleep(0.1)

        assert events == []
        lock.release_read()
        w.join(timeout=2.0)
        r.join(timeout=2.0)

        assert events == ["write", "late-read"]

    def test_write_held(self):
        lock = ReadWriteLock()
        assert not lock.write_held

        with lock.write_locked():
            assert lock.write_held

        assert not lock.write_held

    def test_release_after_exception(self):
        lock = ReadWriteLock()

        with pytest.raises(KeyError):
            with lock.read_locked():
                raise KeyError("boom")

        assert lock.readers == 0

    def test_release_without_acquire(self):
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()
