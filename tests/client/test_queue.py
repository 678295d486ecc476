from __future__ import annotations

import threading
import time

from stamjer_calendar.client.queue import EntityMutationQueue


def test_same_entity_runs_in_submission_order():
    queue = EntityMutationQueue()
    order: list[int] = []
    started = threading.Event()
    release = threading.Event()

    def first():
        with queue.turn("event:a"):
            started.set()
            release.wait(2)
            order.append(1)

    def second():
        with queue.turn("event:a"):
            order.append(2)

    t1 = threading.Thread(target=first)
    t1.start()
    started.wait(2)
    t2 = threading.Thread(target=second)
    t2.start()

    deadline = time.monotonic() + 2
    while queue.pending("event:a") < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert queue.pending("event:a") == 2
    assert order == []

    release.set()
    t1.join(2)
    t2.join(2)

    assert order == [1, 2]
    assert queue.pending("event:a") == 0


def test_different_entities_do_not_wait_on_each_other():
    queue = EntityMutationQueue()
    done = threading.Event()

    def other():
        with queue.turn("event:b"):
            done.set()

    with queue.turn("event:a"):
        t = threading.Thread(target=other)
        t.start()
        assert done.wait(2)
        t.join(2)
