import json
import logging
import math
import pathlib

import requests
import trio
import trio.testing

from hasskey.app import Hasskey, log_level, main
from hasskey.commontypes import TRACE
from hasskey.device.hwtypes import KeyEvent, KeyState
from hasskey.hass import HomeAssistantClient
from hasskey.settings import HomeAssistantSettings, Secret


class FakeSession:
    def __init__(self, statuses=(), errors=()):
        self.statuses = list(statuses)
        self.errors = list(errors)
        self.posts = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append({"url": url, "body": json.loads(data)})
        if self.errors:
            raise self.errors.pop(0)
        response = requests.Response()
        response.status_code = self.statuses.pop(0) if self.statuses else 200
        response.url = url
        return response

    def close(self):
        pass


class FakeHardware:
    def __init__(self):
        self.send_channel, self.receive_channel = trio.open_memory_channel(math.inf)

    async def run(self, *, task_status=trio.TASK_STATUS_IGNORED):
        task_status.started()
        await trio.sleep_forever()

    def events(self):
        return self.receive_channel


class SlowSink:
    def __init__(self):
        self.started = []
        self.release = trio.Event()

    async def deliver(self, event):
        self.started.append(event)
        await self.release.wait()


class LaggySink:
    """Presses take longer to deliver than releases."""

    def __init__(self):
        self.delivered = []

    async def deliver(self, event):
        await trio.sleep(0.5 if event.value == KeyState.DOWN else 0.1)
        self.delivered.append(event)


async def wait_for(predicate, deadline=5):
    with trio.fail_after(deadline):
        while not predicate():
            await trio.sleep(0.01)


def make_client(session):
    return HomeAssistantClient(HomeAssistantSettings(url="http://hass.test/", token=Secret(value="t")), session=session)


async def test_delivery_failure_does_not_stop_dispatch(nursery: trio.Nursery, caplog):
    hardware = FakeHardware()
    session = FakeSession(statuses=[401])
    app = Hasskey(hardware, make_client(session))
    await nursery.start(app.run)

    with caplog.at_level(logging.ERROR):
        hardware.send_channel.send_nowait(KeyEvent.down("kbd", "KEY_A"))
        await wait_for(lambda: len(session.posts) == 1)
        await trio.testing.wait_all_tasks_blocked()
        hardware.send_channel.send_nowait(KeyEvent.up("kbd", "KEY_A"))
        await wait_for(lambda: len(session.posts) == 2)
    assert [p["body"] for p in session.posts] == [
        {"device": "kbd", "key": "KEY_A", "value": "DOWN"},
        {"device": "kbd", "key": "KEY_A", "value": "UP"},
    ]
    assert "Failed to send event" in caplog.text


async def test_unexpected_delivery_error_does_not_stop_dispatch(nursery: trio.Nursery, caplog):
    hardware = FakeHardware()
    session = FakeSession(errors=[RuntimeError("adapter exploded")])
    await nursery.start(Hasskey(hardware, make_client(session)).run)

    with caplog.at_level(logging.ERROR):
        hardware.send_channel.send_nowait(KeyEvent.down("kbd", "KEY_A"))
        hardware.send_channel.send_nowait(KeyEvent.up("kbd", "KEY_A"))
        await wait_for(lambda: len(session.posts) == 2)
    assert [p["body"]["value"] for p in session.posts] == ["DOWN", "UP"]
    assert "adapter exploded" in caplog.text


async def test_slow_delivery_does_not_block_other_devices(nursery: trio.Nursery, autojump_clock):
    hardware = FakeHardware()
    sink = SlowSink()
    await nursery.start(Hasskey(hardware, sink).run)
    kbd_down, kbd_up, remote_down = KeyEvent.down("kbd", "KEY_A"), KeyEvent.up("kbd", "KEY_A"), KeyEvent.down("remote", "KEY_B")
    for event in (kbd_down, kbd_up, remote_down):
        hardware.send_channel.send_nowait(event)
    await trio.testing.wait_all_tasks_blocked()
    # kbd's release waits behind its press; remote has its own worker
    assert sorted(sink.started, key=lambda e: e.device) == [kbd_down, remote_down]
    sink.release.set()
    await trio.testing.wait_all_tasks_blocked()
    assert sink.started[-1] == kbd_up


async def test_events_from_one_device_are_delivered_in_order(nursery: trio.Nursery, autojump_clock):
    hardware = FakeHardware()
    sink = LaggySink()
    await nursery.start(Hasskey(hardware, sink).run)
    events = [
        KeyEvent.down("kbd", "KEY_A"),
        KeyEvent.up("kbd", "KEY_A"),
        KeyEvent.down("kbd", "KEY_B"),
        KeyEvent.up("kbd", "KEY_B"),
    ]
    for event in events:
        hardware.send_channel.send_nowait(event)
    with trio.fail_after(5):
        while len(sink.delivered) < len(events):
            await trio.sleep(0.1)
    assert sink.delivered == events


def test_log_levels():
    assert log_level(0) == logging.WARNING
    assert log_level(1) == logging.INFO
    assert log_level(2) == logging.DEBUG
    assert log_level(3) == TRACE
    assert log_level(7) == TRACE


def test_main_fails_on_missing_config(tmp_path):
    assert main(["hasskey", "--config", str(tmp_path / "nope.yaml")]) == 1


def test_main_fails_on_invalid_url(tmp_path: pathlib.Path):
    config = tmp_path / "config.yaml"
    config.write_text("hass:\n  url: not-a-url\n  token: t\ndevices: []\n")
    assert main(["hasskey", "-vv", "-c", str(config)]) == 1
