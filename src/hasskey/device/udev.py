# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import collections.abc
import functools
import logging
import pathlib
import typing

import pyudev
import trio

from .hwtypes import HotplugAction, HotplugNotification

logger = logging.getLogger(__name__)

INPUT_SUBSYSTEM = "input"


def event_node(device) -> typing.Optional[pathlib.Path]:
    "The /dev/input/eventN path for a udev device, or None if it doesn't have one."
    node = device.device_node
    if not node or not device.sys_name.startswith("event"):
        return None
    return pathlib.Path(node)


class HotplugMonitor:
    def __init__(self, monitor: pyudev.Monitor):
        self._monitor = monitor

    async def notifications(self) -> collections.abc.AsyncIterator[HotplugNotification]:
        while True:
            await trio.lowlevel.wait_readable(self._monitor.fileno())
            for device in iter(functools.partial(self._monitor.poll, 0), None):
                yield HotplugNotification(action=HotplugAction.from_udev(device.action), device=device)


class UdevSource:
    """The input subsystem as udev sees it: what's there now, and what comes and goes."""

    def __init__(self, context: typing.Optional[pyudev.Context] = None):
        if context is None:
            context = pyudev.Context()
        self.context = context

    def enumerate(self) -> collections.abc.Iterator[tuple[pyudev.Device, pathlib.Path]]:
        for device in self.context.list_devices(subsystem=INPUT_SUBSYSTEM):
            path = event_node(device)
            if path is not None:
                yield device, path

    def subscribe(self) -> HotplugMonitor:
        monitor = pyudev.Monitor.from_netlink(self.context)
        monitor.filter_by(subsystem=INPUT_SUBSYSTEM)
        monitor.start()
        logger.debug("Listening for udev events on the %s subsystem", INPUT_SUBSYSTEM)
        return HotplugMonitor(monitor)
