# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import logging
import pathlib
import typing
from contextlib import aclosing

import trio

from .deviceutil import EventDevice
from .hwtypes import DeviceIdentity, HardwareError, HotplugAction, KeyEvent
from .keystreams import ActiveStream
from .matching import match_device
from .registry import StreamRegistry
from .udev import HotplugMonitor, UdevSource, event_node

if typing.TYPE_CHECKING:
    import collections.abc

    from ..settings import DeviceConfig

logger = logging.getLogger(__name__)


class Hardware:
    registry: typing.Optional[StreamRegistry]

    def __init__(self, devices: collections.abc.Sequence[DeviceConfig], udev: typing.Optional[UdevSource] = None):
        self.devices = devices
        self.udev = udev if udev is not None else UdevSource()
        self.registry = None
        self._configs = {config.name: config for config in devices}

    def identify(self, device, device_node: pathlib.Path) -> typing.Optional[DeviceIdentity]:
        name = match_device(device, self.devices)
        if name is None:
            logger.debug("No configured device matches %s", device_node)
            return None
        return DeviceIdentity(name=name, device_node=device_node)

    async def consider(self, device, device_node: pathlib.Path) -> bool:
        """Match a candidate device and, if it matches, open it and start streaming from it.

        Returns True if a new stream was registered. A device that can't be opened is logged and skipped.
        """
        if device_node in self.registry:
            logger.debug("Already streaming from %s", device_node)
            return False
        identity = self.identify(device, device_node)
        if identity is None:
            return False
        event_device = EventDevice(device_node, exclusive=self._configs[identity.name].grab)
        try:
            # opening the node and EVIOCGRAB are blocking syscalls
            await trio.to_thread.run_sync(event_device.grab)
        except (HardwareError, OSError) as exc:
            logger.warning("Unable to open %s for %s: %s", device_node, identity.name, exc)
            return False
        if not self.registry.register(ActiveStream(identity, event_device)):
            event_device.ungrab()
            return False
        logger.info("Found device %s at %s", identity.name, device_node)
        return True

    async def follow_hotplug(self, monitor: HotplugMonitor):
        async with aclosing(monitor.notifications()) as notifications:
            async for notification in notifications:
                match notification.action:
                    case HotplugAction.ADD:
                        device_node = event_node(notification.device)
                        if device_node is not None:
                            await self.consider(notification.device, device_node)
                    case HotplugAction.REMOVE:
                        # Nothing to tear down here; the stream's next read fails and prunes it.
                        logger.debug("Device removed: %s", notification.device)
                    case _:
                        pass

    async def run(self, *, task_status=trio.TASK_STATUS_IGNORED):
        async with trio.open_nursery() as nursery:
            self.registry = StreamRegistry(nursery)
            # subscribe before enumerating, so nothing plugged in between is missed
            monitor = self.udev.subscribe()
            for device, device_node in self.udev.enumerate():
                await self.consider(device, device_node)
            logger.info("Streaming from %d device(s) at startup", len(self.registry))
            task_status.started()
            await self.follow_hotplug(monitor)

    def events(self) -> collections.abc.AsyncIterator[KeyEvent]:
        return self.registry

    async def print_events(self):
        async for evt in self.events():
            print(evt)
