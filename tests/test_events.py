"""
Tests for the in-process event bus.
"""

from datetime import date, time

from slotreservation.domain.models import SlotKey
from slotreservation.services.events import EventBus, SlotFreed

KEY = SlotKey("doc-perera", date(2024, 6, 3), time(9, 0))


def test_publish_reaches_every_subscriber():
    bus = EventBus()
    first, second = [], []
    bus.subscribe(first.append)
    bus.subscribe(second.append)

    bus.publish(SlotFreed(slot_key=KEY, reason="released"))

    assert first == second == [SlotFreed(slot_key=KEY, reason="released")]


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)

    unsubscribe()
    unsubscribe()
    bus.publish(SlotFreed(slot_key=KEY, reason="expired"))

    assert received == []


def test_failing_subscriber_does_not_block_others(caplog):
    """Delivery is best effort; one broken UI must not affect the rest."""
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("socket closed")

    bus.subscribe(broken)
    bus.subscribe(received.append)

    bus.publish(SlotFreed(slot_key=KEY, reason="expired"))

    assert len(received) == 1
    assert "failed on SlotFreed" in caplog.text
