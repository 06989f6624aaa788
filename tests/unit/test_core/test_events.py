"""Unit tests for the listener seam."""
from unittest.mock import Mock

from serial_scanner.core import events
from serial_scanner.core.events import EventEmitter, ScanEvent


class Emitter(EventEmitter):
    def fire(self, kind, **kwargs):
        self._emit(kind, **kwargs)


def test_listeners_receive_events_in_registration_order():
    emitter = Emitter()
    received = []
    emitter.add_listener(lambda e: received.append(("a", e.kind)))
    emitter.add_listener(lambda e: received.append(("b", e.kind)))

    emitter.fire(events.STATUS, message="Ready to scan")

    assert received == [("a", "status"), ("b", "status")]


def test_failing_listener_does_not_block_others():
    emitter = Emitter()
    good = Mock()
    emitter.add_listener(Mock(side_effect=RuntimeError("boom")))
    emitter.add_listener(good)

    emitter.fire(events.ERROR, message="oops")

    good.assert_called_once_with(ScanEvent(kind="error", message="oops"))


def test_remove_listener():
    emitter = Emitter()
    listener = Mock()
    emitter.add_listener(listener)
    emitter.remove_listener(listener)
    emitter.remove_listener(listener)

    emitter.fire(events.STATE)

    listener.assert_not_called()
