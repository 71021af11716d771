# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import argparse
import logging
import math
import pathlib
import sys
import typing

import trio

from .commontypes import TRACE, HasskeyError
from .device.hardware import Hardware
from .device.hwtypes import KeyEvent
from .hass import HomeAssistantClient
from .settings import DEFAULT_CONFIG_PATH, Settings

logger = logging.getLogger(__name__)

VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG, TRACE)


class EventSink(typing.Protocol):
    async def deliver(self, event: KeyEvent) -> typing.Any: ...


class Hasskey:
    """Drains the device registry and hands each event to the sink.

    Every device name gets its own delivery worker, so events from one device reach the sink
    in the order they were pressed, and a slow delivery for one device never holds up another.
    """

    def __init__(self, hardware: Hardware, sink: EventSink):
        self.hardware = hardware
        self.sink = sink
        self._delivery_channels: dict[str, trio.MemorySendChannel[KeyEvent]] = {}

    async def _deliver_in_order(self, receive_channel: trio.MemoryReceiveChannel[KeyEvent]):
        async with receive_channel:
            async for event in receive_channel:
                await self.sink.deliver(event)

    def _delivery_channel(self, device: str, nursery: trio.Nursery):
        send_channel = self._delivery_channels.get(device)
        if send_channel is None:
            send_channel, receive_channel = trio.open_memory_channel[KeyEvent](math.inf)
            self._delivery_channels[device] = send_channel
            nursery.start_soon(self._deliver_in_order, receive_channel, name=f"deliver {device}")
        return send_channel

    async def dispatch_events(self, nursery: trio.Nursery):
        async for event in self.hardware.events():
            logger.debug("Got event: %r", event)
            self._delivery_channel(event.device, nursery).send_nowait(event)

    async def run(self, *, task_status=trio.TASK_STATUS_IGNORED):
        async with trio.open_nursery() as nursery:
            await nursery.start(self.hardware.run)
            task_status.started()
            await self.dispatch_events(nursery)
        logger.debug("goodbye")


async def start_hasskey(settings: Settings):
    client = HomeAssistantClient(settings.home_assistant)
    try:
        app = Hasskey(Hardware(settings.devices), client)
        await app.run()
    finally:
        client.close()


parser = argparse.ArgumentParser(prog="hasskey", description="Forward key presses from input devices to Home Assistant.")
parser.add_argument("-c", "--config", type=pathlib.Path, default=DEFAULT_CONFIG_PATH, metavar="FILE")
parser.add_argument("-v", "--verbose", action="count", default=0, help="repeat for more detail (info, debug, trace)")


def log_level(verbose: int) -> int:
    return VERBOSITY_LEVELS[min(verbose, len(VERBOSITY_LEVELS) - 1)]


def main(argv=sys.argv):
    """
    Args:
        argv (list): List of arguments

    Returns:
        int: A return code

    Runs until killed; only returns early if startup fails.
    """
    parsed = parser.parse_args(argv[1:])
    logging.basicConfig(level=log_level(parsed.verbose))
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    try:
        settings = Settings.load(parsed.config)
        trio.run(start_hasskey, settings)
    except HasskeyError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:
        logger.exception("Fatal error")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
