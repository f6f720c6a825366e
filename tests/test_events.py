"""
Tests for the lifecycle event channel.
"""

import pytest

from response_cache.entities import CacheEvent, CacheEventType
from response_cache.events import EventBus


@pytest.fixture
def bus():
    return EventBus()


def test_publish_to_type_and_wildcard(bus):
    """Typed handlers run before wildcard handlers."""
    seen = []
    bus.subscribe(CacheEventType.HIT, lambda e: seen.append(("hit", e.cache_key)))
    bus.subscribe("*", lambda e: seen.append(("all", e.cache_key)))

    bus.publish(CacheEvent(type=CacheEventType.HIT, cache_key="k"))
    bus.publish(CacheEvent(type=CacheEventType.MISS))

    assert seen == [("hit", "k"), ("all", "k"), ("all", None)]


def test_string_topics(bus):
    seen = []
    bus.subscribe("similarity_hit", seen.append)

    bus.publish(CacheEvent(type=CacheEventType.SIMILARITY_HIT, similarity=0.9))

    assert len(seen) == 1
    assert seen[0].similarity == 0.9


def test_unknown_topic_rejected(bus):
    with pytest.raises(ValueError):
        bus.subscribe("evicted", lambda e: None)


def test_unsubscribe(bus):
    seen = []
    unsubscribe = bus.subscribe(CacheEventType.SET, seen.append)
    assert bus.handler_count(CacheEventType.SET) == 1

    unsubscribe()
    unsubscribe()
    bus.publish(CacheEvent(type=CacheEventType.SET))

    assert seen == []
    assert bus.handler_count() == 0


def test_failing_handler_isolated(bus):
    """One broken handler does not stop the others."""
    seen = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(CacheEventType.ERROR, broken)
    bus.subscribe(CacheEventType.ERROR, seen.append)

    bus.publish(CacheEvent(type=CacheEventType.ERROR, error="disk full"))

    assert len(seen) == 1


@pytest.mark.parametrize(
    "event_type, expected",
    [
        (CacheEventType.HIT, True),
        (CacheEventType.MISS, True),
        (CacheEventType.SIMILARITY_HIT, True),
        (CacheEventType.SET, False),
        (CacheEventType.CLEANUP, False),
    ],
)
def test_request_events(event_type, expected):
    assert CacheEvent(type=event_type).is_request is expected
