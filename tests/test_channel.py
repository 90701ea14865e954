import threading
import time

import pytest

from hoardd_client.export.channel import ChannelClosed, RecordChannel
from hoardd_client.export.scope import RunScope
from hoardd_client.export.types import RunStatus


def _start(target, *args) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


def test_send_blocks_until_a_receiver_takes_the_item():
    channel = RecordChannel()
    delivered = threading.Event()

    def sender():
        channel.send("rec-1")
        delivered.set()

    thread = _start(sender)
    time.sleep(0.05)
    assert not delivered.is_set()

    assert channel.recv() == "rec-1"
    assert delivered.wait(1.0)
    thread.join(1.0)


def test_receivers_drain_then_stop_after_close():
    channel = RecordChannel()
    received = []

    def consumer():
        for item in channel:
            received.append(item)

    thread = _start(consumer)
    for i in range(5):
        assert channel.send(i) is True
    channel.close()
    thread.join(1.0)

    assert not thread.is_alive()
    assert received == [0, 1, 2, 3, 4]


def test_close_twice_and_send_after_close_raise():
    channel = RecordChannel()
    channel.close()
    with pytest.raises(ChannelClosed):
        channel.close()
    with pytest.raises(ChannelClosed):
        channel.send("late")


def test_each_item_reaches_exactly_one_receiver():
    channel = RecordChannel()
    results = [[] for _ in range(4)]

    def consumer(bucket):
        for item in channel:
            bucket.append(item)
            time.sleep(0)

    threads = [_start(consumer, bucket) for bucket in results]
    for i in range(300):
        channel.send(i)
    channel.close()
    for thread in threads:
        thread.join(2.0)

    merged = sorted(item for bucket in results for item in bucket)
    assert merged == list(range(300))


def test_cancel_wakes_blocked_receiver():
    scope = RunScope()
    channel = RecordChannel(scope)
    outcome = {}

    def consumer():
        try:
            channel.recv()
        except ChannelClosed as exc:
            outcome["closed"] = str(exc)

    thread = _start(consumer)
    time.sleep(0.05)
    scope.cancel()
    thread.join(1.0)

    assert not thread.is_alive()
    assert outcome["closed"] == "run cancelled"


def test_cancel_withdraws_pending_send():
    scope = RunScope()
    channel = RecordChannel(scope)
    outcome = {}

    def sender():
        outcome["sent"] = channel.send("never-taken")

    thread = _start(sender)
    time.sleep(0.05)
    scope.fail(RuntimeError("boom"))
    thread.join(1.0)

    assert outcome["sent"] is False
    with pytest.raises(ChannelClosed):
        channel.recv()


def test_send_after_cancel_returns_false_without_blocking():
    scope = RunScope()
    channel = RecordChannel(scope)
    scope.cancel(RunStatus.LIMIT_REACHED)
    assert channel.send("x") is False


def test_scope_first_error_wins():
    scope = RunScope()
    first = ValueError("first")
    assert scope.fail(first) is True
    assert scope.fail(RuntimeError("second")) is False
    assert scope.cancel() is False
    assert scope.cancelled
    assert scope.error is first
    assert scope.status is RunStatus.FAILED


def test_scope_cancel_is_not_a_failure():
    scope = RunScope()
    assert scope.cancel(RunStatus.LIMIT_REACHED) is True
    assert scope.fail(RuntimeError("after")) is False
    assert scope.status is RunStatus.LIMIT_REACHED
    assert scope.error is None
    assert scope.cancelled
