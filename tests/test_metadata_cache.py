from __future__ import annotations

import threading
import time

import pytest

from watch_wrapped.metadata_cache import ConcurrencyGate, TtlCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now



def test_ttl_cache_expires_entries() -> None:
    clock = FakeClock()
    cache = TtlCache(ttl_seconds=300, max_entries=10, clock=clock)

    cache.set("movie:603", {"title": "The Matrix"})
    clock.now += 299
    assert cache.get("movie:603") == {"title": "The Matrix"}

    clock.now += 1
    assert cache.get("movie:603") is None
    assert len(cache) == 0



def test_ttl_cache_evicts_oldest_entry_when_full() -> None:
    cache = TtlCache(ttl_seconds=60, max_entries=2, clock=FakeClock())

    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 10
    assert cache.get("c") == 3
    assert len(cache) == 2

    cache.clear()
    assert len(cache) == 0



def test_ttl_cache_rejects_empty_capacity() -> None:
    with pytest.raises(ValueError):
        TtlCache(ttl_seconds=60, max_entries=0)



def test_concurrency_gate_caps_requests_in_flight() -> None:
    gate = ConcurrencyGate(2)
    lock = threading.Lock()
    in_flight = 0
    peak = 0

    def worker() -> None:
        nonlocal in_flight, peak
        with gate:
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
            time.sleep(0.01)
            with lock:
                in_flight -= 1

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert gate.max_concurrent == 2
    assert 1 <= peak <= 2
    assert in_flight == 0



def test_concurrency_gate_releases_on_error() -> None:
    gate = ConcurrencyGate(1)

    with pytest.raises(RuntimeError):
        with gate:
            raise RuntimeError("boom")

    with gate:
        pass

    with pytest.raises(ValueError):
        ConcurrencyGate(0)
