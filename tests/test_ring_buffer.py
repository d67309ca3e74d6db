from __future__ import annotations

import threading

import pytest

from mcp_servers.lens.ring_buffer import ConsoleRingBuffer


def test_overflow_keeps_newest_in_fifo_order() -> None:
    buf: ConsoleRingBuffer[str] = ConsoleRingBuffer(50)
    for i in range(1, 51):
        buf.push(f"msg {i}")
    assert buf.is_full
    for i in range(51, 61):
        buf.push(f"msg {i}")

    assert len(buf) == 50
    assert buf.to_list() == [f"msg {i}" for i in range(11, 61)]
    assert list(buf) == buf.to_list()
    assert buf.peek() == "msg 60"


def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        ConsoleRingBuffer(0)
    with pytest.raises(ValueError):
        ConsoleRingBuffer(-3)


def test_last_clear_and_copy_semantics() -> None:
    buf: ConsoleRingBuffer[int] = ConsoleRingBuffer(4)
    assert buf.is_empty
    assert buf.peek() is None
    buf.push_many([1, 2, 3, 4, 5])

    assert buf.last(2) == [4, 5]
    assert buf.last(0) == []
    assert buf.last(10) == [2, 3, 4, 5]
    assert buf.filter(lambda n: n % 2 == 0) == [2, 4]

    snapshot = buf.to_list()
    snapshot.append(99)
    assert buf.to_list() == [2, 3, 4, 5]

    buf.clear()
    assert len(buf) == 0
    assert buf.capacity == 4
    buf.push(7)
    assert buf.to_list() == [7]


def test_iteration_is_a_snapshot() -> None:
    buf: ConsoleRingBuffer[int] = ConsoleRingBuffer(3)
    buf.push_many([1, 2, 3])
    seen = []
    for item in buf:
        buf.push(item * 10)
        seen.append(item)
    assert seen == [1, 2, 3]
    assert buf.to_list() == [10, 20, 30]


def test_concurrent_writers_never_exceed_capacity() -> None:
    buf: ConsoleRingBuffer[int] = ConsoleRingBuffer(100)

    def writer(offset: int) -> None:
        for i in range(1000):
            buf.push(offset + i)

    threads = [threading.Thread(target=writer, args=(n * 10_000,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(buf) == 100
    assert buf.is_full
