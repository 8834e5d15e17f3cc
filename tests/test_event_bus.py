"""Unit Tests for EventBus

Tests: subscribe/publish, wildcard subscriptions, subscriber isolation,
global bus lifecycle, event serialization
"""
import threading
from datetime import datetime
from unittest.mock import Mock

from fieldsync.event_bus import EventBus, get_event_bus, reset_event_bus
from fieldsync.events import (
    BatchSyncCompletedEvent,
    RecordRemovedEvent,
    RecordStoredEvent,
    RecordSyncedEvent,
    SyncErrorEvent,
    SyncRequestEvent,
)


class TestEventBusBasics:
    """Tests for core EventBus functionality."""

    def test_instantiation(self):
        bus = EventBus()
        assert bus.subscriber_count() == 0

    def test_publish_to_type_subscribers(self):
        bus = EventBus()
        stored = Mock()
        synced = Mock()
        bus.subscribe("record.stored", stored)
        bus.subscribe("sync.completed", synced)

        event = RecordStoredEvent(cid="abc")
        bus.publish(event)

        stored.assert_called_once_with(event)
        synced.assert_not_called()

    def test_wildcard_receives_everything_after_specific(self):
        bus = EventBus()
        calls = []
        bus.subscribe("*", lambda e: calls.append(("wildcard", e.event_type)))
        bus.subscribe("record.removed", lambda e: calls.append(("specific", e.event_type)))

        bus.publish(RecordRemovedEvent(cid="abc"))

        assert calls == [("specific", "record.removed"), ("wildcard", "record.removed")]

    def test_unsubscribe(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe("record.stored", callback)

        assert bus.unsubscribe("record.stored", callback) is True
        assert bus.unsubscribe("record.stored", callback) is False

        bus.publish(RecordStoredEvent(cid="abc"))
        callback.assert_not_called()
        assert bus.subscriber_count("record.stored") == 0

    def test_failing_subscriber_is_isolated(self):
        bus = EventBus()
        after = Mock()
        bus.subscribe("sync.error", Mock(side_effect=RuntimeError("listener bug")))
        bus.subscribe("sync.error", after)

        bus.publish(SyncErrorEvent(cid="abc", error="offline", error_type="NetworkError"))

        after.assert_called_once()

    def test_event_without_type_is_ignored(self):
        bus = EventBus()
        callback = Mock()
        bus.subscribe("*", callback)

        bus.publish(object())

        callback.assert_not_called()

    def test_clear_and_count(self):
        bus = EventBus()
        bus.subscribe("a", Mock())
        bus.subscribe("a", Mock())
        bus.subscribe("b", Mock())

        assert bus.subscriber_count("a") == 2
        assert bus.subscriber_count() == 3

        bus.clear()
        assert bus.subscriber_count() == 0

    def test_concurrent_subscribe(self):
        bus = EventBus()

        def subscribe_many():
            for _ in range(100):
                bus.subscribe("record.stored", Mock())

        threads = [threading.Thread(target=subscribe_many) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert bus.subscriber_count("record.stored") == 500


class TestGlobalBus:
    """Tests for get_event_bus/reset_event_bus."""

    def test_singleton(self):
        assert get_event_bus() is get_event_bus()

    def test_reset(self):
        bus = get_event_bus()
        bus.subscribe("record.stored", Mock())

        reset_event_bus()

        assert get_event_bus() is not bus
        assert get_event_bus().subscriber_count() == 0


class TestEvents:
    """Tests for event serialization."""

    def test_to_dict(self):
        when = datetime(2024, 5, 1, 12, 0)
        events = [
            RecordStoredEvent(cid="abc", server_id=42, timestamp=when),
            RecordRemovedEvent(cid="abc", timestamp=when),
            SyncRequestEvent(cid="abc", url="https://w/api/v1/samples", media_count=2, timestamp=when),
            RecordSyncedEvent(cid="abc", server_id=42, outcome="success", timestamp=when),
            SyncErrorEvent(cid="abc", error="offline", error_type="NetworkError", timestamp=when),
            BatchSyncCompletedEvent(total=3, outcomes={"success": 3}, timestamp=when),
        ]

        for event in events:
            data = event.to_dict()
            assert data["event_type"] == event.event_type
            assert data["timestamp"] == "2024-05-01T12:00:00"

        assert events[2].to_dict()["media_count"] == 2
        assert events[5].to_dict()["outcomes"] == {"success": 3}
