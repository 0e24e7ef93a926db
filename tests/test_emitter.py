"""Tests for calendar_poller.emitter.EventEmitter."""

import pytest

from calendar_poller.emitter import EventEmitter

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def test_emit_when_listeners_registered_then_called_in_order_with_args() -> None:
    emitter = EventEmitter()
    calls: list[tuple[str, tuple]] = []
    emitter.on("data", lambda *args: calls.append(("first", args)))
    emitter.on("data", lambda *args: calls.append(("second", args)))

    assert emitter.emit("data", 1, "two") is True
    assert calls == [("first", (1, "two")), ("second", (1, "two"))]


def test_emit_when_no_listeners_then_false() -> None:
    assert EventEmitter().emit("error", ValueError("x")) is False


def test_once_when_emitted_twice_then_called_once() -> None:
    emitter = EventEmitter()
    calls: list[int] = []
    emitter.once("started", lambda: calls.append(1))

    emitter.emit("started")
    emitter.emit("started")

    assert calls == [1]
    assert emitter.listener_count("started") == 0


def test_off_when_listener_removed_then_not_called() -> None:
    emitter = EventEmitter()
    calls: list[str] = []

    def listener() -> None:
        calls.append("stopped")

    emitter.on("stopped", listener)
    emitter.off("stopped", listener)
    emitter.off("stopped", listener)
    emitter.emit("stopped")

    assert calls == []


def test_emit_when_listener_raises_then_others_still_called() -> None:
    emitter = EventEmitter()
    calls: list[str] = []

    def broken(_payload) -> None:
        raise RuntimeError("listener bug")

    emitter.on("data", broken)
    emitter.on("data", lambda payload: calls.append(payload))

    assert emitter.emit("data", "window") is True
    assert calls == ["window"]
