"""Tests for pvsim_api.services.publisher."""

import asyncio

import pytest

from pvsim_api.services.publisher import Publisher


@pytest.fixture
def publisher() -> Publisher:
    return Publisher(queue_size=3)


# ---------------------------------------------------------------------------
# Subscription management
# ---------------------------------------------------------------------------


def test_subscribe_assigns_unique_tokens(publisher):
    a, b = publisher.subscribe(), publisher.subscribe()
    assert a.token != b.token
    assert publisher.subscriber_count == 2


def test_unsubscribe_by_handle_or_token(publisher):
    a, b = publisher.subscribe(), publisher.subscribe()
    publisher.unsubscribe(a)
    publisher.unsubscribe(b.token)
    assert publisher.subscriber_count == 0
    assert a.closed and b.closed


def test_unsubscribe_unknown_token_is_ignored(publisher):
    publisher.unsubscribe(12345)
    assert publisher.subscriber_count == 0


def test_invalid_queue_size():
    with pytest.raises(ValueError, match="queue_size must be positive"):
        Publisher(queue_size=0)


# ---------------------------------------------------------------------------
# publish
# ---------------------------------------------------------------------------


def test_publish_without_subscribers(publisher):
    assert publisher.publish({"siteId": 1}) == 0


def test_publish_reaches_every_subscriber(publisher):
    subs = [publisher.subscribe() for _ in range(3)]
    assert publisher.publish({"siteId": 1, "powerKw": 2.5}) == 3

    async def drain():
        return [await s.get() for s in subs]

    events = asyncio.run(drain())
    assert events == [{"siteId": 1, "powerKw": 2.5}] * 3


def test_full_queue_drops_only_for_that_subscriber(publisher):
    slow = publisher.subscribe()
    fast = publisher.subscribe(maxsize=10)

    for i in range(5):
        publisher.publish({"n": i})

    assert slow.queue.qsize() == 3
    assert slow.dropped == 2
    assert fast.queue.qsize() == 5
    assert fast.dropped == 0


def test_closed_subscription_is_skipped(publisher):
    sub = publisher.subscribe()
    sub.close()
    assert publisher.publish({"n": 1}) == 0
    assert sub.queue.empty()


def test_failing_subscriber_does_not_affect_others(publisher):
    broken = publisher.subscribe()
    healthy = publisher.subscribe()

    def explode(event):
        raise RuntimeError("socket gone")

    broken.offer = explode

    assert publisher.publish({"n": 1}) == 1
    assert healthy.queue.qsize() == 1


def test_events_keep_publication_order(publisher):
    sub = publisher.subscribe()
    for i in range(3):
        publisher.publish({"n": i})

    async def drain():
        return [(await sub.get())["n"] for _ in range(3)]

    assert asyncio.run(drain()) == [0, 1, 2]


def test_close_all(publisher):
    subs = [publisher.subscribe() for _ in range(2)]
    publisher.close_all()
    assert publisher.subscriber_count == 0
    assert all(s.closed for s in subs)
