import threading
import time
from concurrent.futures import ThreadPoolExecutor

from core.locks import KeyedLock, RoundGate


def test_keyed_lock_serialises_same_key():
    locks = KeyedLock()
    state = {"value": 0}

    def bump():
        with locks.hold("A"):
            current = state["value"]
            time.sleep(0.001)
            state["value"] = current + 1

    with ThreadPoolExecutor(max_workers=8) as pool:
        for _ in range(50):
            pool.submit(bump)

    assert state["value"] == 50
    assert len(locks) == 0


def test_keyed_lock_does_not_block_other_keys():
    locks = KeyedLock()
    entered = threading.Event()

    def other():
        with locks.hold("B"):
            entered.set()

    with locks.hold("A"):
        thread = threading.Thread(target=other)
        thread.start()
        assert entered.wait(1)
    thread.join()


def test_exclusive_waits_for_shared_holders():
    gate = RoundGate()
    order = []
    release = threading.Event()

    def bettor():
        with gate.shared():
            release.wait(1)
            order.append("bet")

    def resolver():
        with gate.exclusive():
            order.append("resolve")

    bet_thread = threading.Thread(target=bettor)
    bet_thread.start()
    time.sleep(0.05)
    resolve_thread = threading.Thread(target=resolver)
    resolve_thread.start()
    time.sleep(0.05)
    assert order == []

    release.set()
    bet_thread.join(1)
    resolve_thread.join(1)
    assert order == ["bet", "resolve"]


def test_new_shared_holders_wait_while_closing():
    gate = RoundGate()
    entered = threading.Event()

    def bettor():
        with gate.shared():
            entered.set()

    with gate.exclusive():
        assert gate.closed
        thread = threading.Thread(target=bettor)
        thread.start()
        assert not entered.wait(0.1)

    assert entered.wait(1)
    thread.join()
    assert not gate.closed
