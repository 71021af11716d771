import errno
import logging
import math
import pathlib

import pytest
import trio
import trio.testing

from hasskey.device.eventsource import Event
from hasskey.device.hwtypes import DeviceDisconnectedError, DeviceIdentity, KeyEvent
from hasskey.device.keystreams import ActiveStream
from hasskey.device.registry import StreamRegistry


class ChannelDevice:
    """Raw events (or exceptions to raise) are pushed in by the test."""

    def __init__(self):
        self.send_channel, self.receive_channel = trio.open_memory_channel(math.inf)
        self.grabbed = True

    def push(self, item):
        self.send_channel.send_nowait(item)

    def press(self, key, code):
        self.push(Event.key(key, code, 1))
        self.push(Event.key(key, code, 0))

    async def events(self):
        async for item in self.receive_channel:
            if isinstance(item, BaseException):
                raise item
            yield item

    def ungrab(self):
        self.grabbed = False


def make_stream(name, node):
    device = ChannelDevice()
    return ActiveStream(DeviceIdentity(name=name, device_node=pathlib.Path(node)), device), device


async def receive_n(registry, count, deadline=1):
    received = []
    with trio.fail_after(deadline):
        while len(received) < count:
            received.append(await registry.next())
    return received


async def test_register_while_events_pending(nursery: trio.Nursery):
    registry = StreamRegistry(nursery)
    first, first_device = make_stream("kbd", "/dev/input/event3")
    assert registry.register(first)
    first_device.press("KEY_A", 30)
    first_device.press("KEY_B", 48)
    # let the pump move everything into the fan-in channel before anything is consumed
    await trio.testing.wait_all_tasks_blocked()

    second, second_device = make_stream("remote", "/dev/input/event7")
    assert registry.register(second)
    second_device.press("KEY_PLAYPAUSE", 164)
    first_device.press("KEY_C", 46)

    received = await receive_n(registry, 8)
    from_first = [e for e in received if e.device == "kbd"]
    from_second = [e for e in received if e.device == "remote"]
    assert from_first == [
        KeyEvent.down("kbd", "KEY_A"),
        KeyEvent.up("kbd", "KEY_A"),
        KeyEvent.down("kbd", "KEY_B"),
        KeyEvent.up("kbd", "KEY_B"),
        KeyEvent.down("kbd", "KEY_C"),
        KeyEvent.up("kbd", "KEY_C"),
    ]
    assert from_second == [KeyEvent.down("remote", "KEY_PLAYPAUSE"), KeyEvent.up("remote", "KEY_PLAYPAUSE")]

    await trio.testing.wait_all_tasks_blocked()
    with pytest.raises(trio.WouldBlock):
        registry._receive_channel.receive_nowait()


async def test_register_during_pending_next(nursery: trio.Nursery):
    registry = StreamRegistry(nursery)
    results = []

    async def consume(*, task_status=trio.TASK_STATUS_IGNORED):
        task_status.started()
        results.append(await registry.next())

    await nursery.start(consume)
    await trio.testing.wait_all_tasks_blocked()
    stream, device = make_stream("kbd", "/dev/input/event3")
    registry.register(stream)
    device.push(Event.key("KEY_A", 30, 1))
    with trio.fail_after(1):
        while not results:
            await trio.sleep(0)
    assert results == [KeyEvent.down("kbd", "KEY_A")]


async def test_duplicate_node_is_not_registered(nursery: trio.Nursery):
    registry = StreamRegistry(nursery)
    first, _ = make_stream("kbd", "/dev/input/event3")
    again, again_device = make_stream("kbd", "/dev/input/event3")
    assert registry.register(first)
    assert not registry.register(again)
    assert len(registry) == 1
    assert registry.streams.value[pathlib.Path("/dev/input/event3")] is first
    assert pathlib.Path("/dev/input/event3") in registry


async def test_failed_stream_is_pruned(nursery: trio.Nursery, caplog):
    registry = StreamRegistry(nursery)
    gone, gone_device = make_stream("kbd", "/dev/input/event3")
    broken, broken_device = make_stream("numpad", "/dev/input/event4")
    fine, fine_device = make_stream("remote", "/dev/input/event7")
    for stream in (gone, broken, fine):
        registry.register(stream)

    gone_device.push(DeviceDisconnectedError("bye"))
    with caplog.at_level(logging.ERROR):
        broken_device.push(OSError(errno.EIO, "I/O error"))
        with trio.fail_after(1):
            await registry.streams.wait_value(lambda s: len(s) == 1)
    assert list(registry.streams.value) == [pathlib.Path("/dev/input/event7")]
    assert not gone_device.grabbed
    assert not broken_device.grabbed
    assert "Failed to read from" in caplog.text

    fine_device.press("KEY_VOLUMEUP", 115)
    assert await receive_n(registry, 2) == [KeyEvent.down("remote", "KEY_VOLUMEUP"), KeyEvent.up("remote", "KEY_VOLUMEUP")]

    # the node can be registered again once its old stream is gone
    back, back_device = make_stream("kbd", "/dev/input/event3")
    assert registry.register(back)
    back_device.press("KEY_A", 30)
    assert await receive_n(registry, 2) == [KeyEvent.down("kbd", "KEY_A"), KeyEvent.up("kbd", "KEY_A")]


async def test_ended_stream_is_pruned(nursery: trio.Nursery):
    registry = StreamRegistry(nursery)
    stream, device = make_stream("kbd", "/dev/input/event3")
    registry.register(stream)
    device.press("KEY_A", 30)
    device.send_channel.close()
    assert await receive_n(registry, 2) == [KeyEvent.down("kbd", "KEY_A"), KeyEvent.up("kbd", "KEY_A")]
    with trio.fail_after(1):
        await registry.streams.wait_value(lambda s: not s)
    assert not device.grabbed
