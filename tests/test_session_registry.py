import threading

import pytest

from session_registry import (
    DETACHED,
    CardAbsent,
    CardPresent,
    ReaderAttached,
    ReaderDetached,
    ReaderError,
)
from tag_reader import MockTagReader


def test_starts_with_no_reader(registry):
    assert registry.current_reader() is None
    assert registry.current_session() is None
    assert registry.has_card() is False
    assert registry.snapshot() == {"reader": None, "state": "no_reader", "card": None}


def test_attach_installs_session_without_card(registry, tag):
    registry.on_attach(tag.name, tag)

    assert registry.current_reader() is tag
    assert registry.has_card() is False
    assert registry.snapshot()["state"] == "card_absent"


def test_card_events_toggle_presence(registry, tag):
    registry.on_attach(tag.name, tag)

    registry.on_card_present({"atr": "3B 8F"})
    assert registry.has_card() is True
    assert registry.snapshot() == {"reader": tag.name, "state": "card_present", "card": {"atr": "3B 8F"}}

    registry.on_card_absent()
    assert registry.has_card() is False
    assert tag.released == 1


def test_card_events_without_reader_are_ignored(registry):
    registry.on_card_present({"atr": "3B"})
    registry.on_card_absent()

    assert registry.has_card() is False
    assert registry.current_session() is None


def test_detach_clears_session_and_marks_it_detached(attached, tag):
    session = attached.current_session()

    attached.on_detach(tag.name)

    assert attached.current_reader() is None
    assert attached.has_card() is False
    assert session.state == DETACHED
    assert attached.is_current(session) is False


def test_detach_of_other_reader_is_ignored(attached, tag):
    attached.on_detach("Some Other Reader")

    assert attached.current_reader() is tag


def test_detach_releases_reader_connection(attached, tag):
    attached.on_detach(tag.name)

    assert tag.released == 1


def test_detach_of_other_reader_keeps_connection(attached, tag):
    attached.on_detach("Some Other Reader")

    assert tag.released == 0


def test_attach_releases_replaced_reader(attached, tag):
    replacement = MockTagReader(name="Second Reader")

    attached.on_attach(replacement.name, replacement)

    assert tag.released == 1


def test_release_failure_still_detaches(attached, tag, caplog):
    def broken_release():
        raise RuntimeError("disconnect failed")

    tag.release = broken_release

    attached.on_detach(tag.name)

    assert attached.current_reader() is None
    assert "disconnect failed" in caplog.text


def test_attach_replaces_previous_session(attached):
    old = attached.current_session()
    replacement = MockTagReader(name="Second Reader")

    attached.on_attach(replacement.name, replacement)

    assert attached.current_reader() is replacement
    assert attached.has_card() is False
    assert old.state == DETACHED
    assert attached.is_current(old) is False


def test_card_event_for_other_reader_is_ignored(registry, tag):
    registry.on_attach(tag.name, tag)

    registry.on_card_present({"atr": "3B"}, device_id="Some Other Reader")

    assert registry.has_card() is False


def test_dispatch_applies_events_in_order(registry, tag):
    seen = []
    registry.listeners.append(seen.append)

    for event in (
        ReaderAttached(tag.name, tag),
        CardPresent({"atr": "3B"}, device_id=tag.name),
        CardAbsent(device_id=tag.name),
        CardPresent({"atr": "3C"}),
    ):
        registry.publish(event)

    assert registry.current_session() is None
    assert registry.drain() == 4
    assert registry.snapshot()["card"] == {"atr": "3C"}
    assert len(seen) == 4

    registry.publish(ReaderDetached(tag.name))
    registry.drain()
    assert registry.current_reader() is None


def test_reader_error_does_not_change_state(attached, tag, caplog):
    attached.dispatch(ReaderError(RuntimeError("transmit failed")))

    assert attached.current_reader() is tag
    assert attached.has_card() is True
    assert "transmit failed" in caplog.text


def test_unknown_event_is_rejected(registry):
    with pytest.raises(TypeError):
        registry.dispatch("card")


def test_dispatcher_thread_applies_published_events(registry, tag):
    registry.start()
    try:
        registry.publish(ReaderAttached(tag.name, tag))
        registry.publish(CardPresent({"atr": "3B"}))

        assert registry.wait_for_card(2.0) is True
        assert registry.current_reader() is tag
    finally:
        registry.stop()


def test_wait_for_card_times_out(registry):
    assert registry.wait_for_card(0.05) is False


def test_wait_for_reader_wakes_on_attach(registry, tag):
    timer = threading.Timer(0.05, registry.on_attach, args=(tag.name, tag))
    timer.start()
    try:
        assert registry.wait_for_reader(2.0) is True
    finally:
        timer.cancel()
