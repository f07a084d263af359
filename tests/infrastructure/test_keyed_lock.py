from __future__ import annotations

import threading
import time

from circulation.infrastructure.keyed_lock import KeyedLock


def test_same_key_reuses_lock_and_is_reentrant() -> None:
    locks: KeyedLock[int] = KeyedLock()
    with locks.hold(1):
        with locks.hold(1):
            pass
    with locks.hold(2):
        pass
    assert len(locks) == 2


def test_different_keys_do_not_block_each_other() -> None:
    locks: KeyedLock[str] = KeyedLock()
    entered = threading.Event()
    release = threading.Event()

    def hold_a() -> None:
        with locks.hold("a"):
            entered.set()
            release.wait(timeout=2)

    t = threading.Thread(target=hold_a)
    t.start()
    assert entered.wait(timeout=2)

    started = time.monotonic()
    with locks.hold("b"):
        elapsed = time.monotonic() - started
    release.set()
    t.join(timeout=2)
    assert elapsed < 0.5


def test_same_key_serializes_threads() -> None:
    locks: KeyedLock[int] = KeyedLock()
    inside = 0
    peak = 0
    guard = threading.Lock()

    def work() -> None:
        nonlocal inside, peak
        with locks.hold(7):
            with guard:
                inside += 1
                peak = max(peak, inside)
            time.sleep(0.01)
            with guard:
                inside -= 1

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert peak == 1
