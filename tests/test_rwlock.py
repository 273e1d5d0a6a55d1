"""Unit tests for the engine's read/write lock."""

from __future__ import annotations

import threading
import time
from typing import List

from stratum.core._rwlock import ReadWriteLock


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestReadWriteLock:
    """Test suite for ReadWriteLock."""

    def test_nested_read_with_writer_waiting(self):
        """A reader re-enters the read side even while a writer is queued."""
        lock = ReadWriteLock()
        order: List[str] = []

        def writer():
            with lock.write():
                order.append("write")

        def reader():
            with lock.read():
                writing = threading.Thread(target=writer, daemon=True)
                writing.start()
                assert wait_for(lambda: lock._writers_waiting == 1)
                with lock.read():
                    order.append("nested read")
            writing.join(5)

        thread = threading.Thread(target=reader, daemon=True)
        thread.start()
        thread.join(5)
        assert not thread.is_alive()
        assert order == ["nested read", "write"]

    def test_writer_preferred_over_new_readers(self):
        """A fresh reader waits behind a queued writer."""
        lock = ReadWriteLock()
        order: List[str] = []
        lock.acquire_read()

        def writer():
            with lock.write():
                order.append("write")

        def reader():
            with lock.read():
                order.append("read")

        writing = threading.Thread(target=writer, daemon=True)
        writing.start()
        assert wait_for(lambda: lock._writers_waiting == 1)
        reading = threading.Thread(target=reader, daemon=True)
        reading.start()
        time.sleep(0.05)
        assert order == []
        lock.release_read()
        writing.join(5)
        reading.join(5)
        assert order == ["write", "read"]

    def test_writer_reenters(self):
        """The writing thread may take either side again."""
        lock = ReadWriteLock()
        with lock.write():
            with lock.read():
                with lock.write():
                    pass
        with lock.write():
            pass
