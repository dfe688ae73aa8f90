from __future__ import annotations

from typing import List

from openapi_dataflow.flows.progress import ProgressChannel


def test_emit_without_observers_keeps_messages() -> None:
    channel = ProgressChannel()

    channel.emit("Reading all rows requested in OpenApi definition")

    assert channel.messages == ["Reading all rows requested in OpenApi definition"]


def test_observers_receive_every_message() -> None:
    channel = ProgressChannel()
    seen: List[str] = []
    channel.subscribe(seen.append)

    channel.emit("one")
    channel.emit("two")

    assert seen == ["one", "two"]


def test_failing_observer_does_not_interrupt_emission() -> None:
    channel = ProgressChannel()
    seen: List[str] = []

    def broken(message: str) -> None:
        raise RuntimeError("observer down")

    channel.subscribe(broken)
    channel.subscribe(seen.append)

    channel.emit("still delivered")

    assert seen == ["still delivered"]
    assert channel.messages == ["still delivered"]


def test_messages_is_a_copy() -> None:
    channel = ProgressChannel()
    channel.emit("a")

    channel.messages.append("b")

    assert channel.messages == ["a"]
