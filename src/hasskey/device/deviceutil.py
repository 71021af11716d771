# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import collections.abc
import contextlib
import errno
import fcntl
import logging
import os
import pathlib

import trio

from ..commontypes import NotInContextError
from .eventsource import Event
from .hwtypes import DeviceDisconnectedError, DeviceGrabError

logger = logging.getLogger(__name__)


def _translate_oserror(exc: OSError):
    if exc.errno == errno.ENODEV:
        return DeviceDisconnectedError(f"Device went away: {exc}")
    return exc


class EventDevice(contextlib.AbstractContextManager):
    def __init__(self, device_path: str | pathlib.Path, exclusive=True, allow_auto_sync=False):
        self.exclusive = exclusive
        self.allow_auto_sync = allow_auto_sync
        if not isinstance(device_path, pathlib.Path):
            device_path = pathlib.Path(device_path)
        if not device_path.is_absolute():
            raise ValueError("Device path must be absolute")
        self.device_path = device_path
        self._f = None
        self._d = None

    def grab(self):
        import libevdev

        self._f = self.device_path.open("rb", buffering=0)
        try:
            fcntl.fcntl(self._f, fcntl.F_SETFL, os.O_NONBLOCK)
            self._d = libevdev.Device(self._f)
            if self.exclusive:
                self._d.grab()
        except libevdev.device.DeviceGrabError as exc:
            self.ungrab()
            raise DeviceGrabError(f"{self.device_path} is grabbed by another process") from exc
        except OSError as exc:
            self.ungrab()
            translated = _translate_oserror(exc)
            if translated is exc:
                raise
            raise translated from exc

    def ungrab(self):
        # could call self._d.ungrab(). but simply closing self._f is sufficient.
        if self._f is not None:
            self._f.close()
        self._d = None
        self._f = None

    def __enter__(self):
        self.grab()
        return self

    def pending_events(self) -> collections.abc.Iterator[Event]:
        """Drain whatever the kernel has buffered for this node without blocking."""
        import libevdev

        if self._d is None:
            raise NotInContextError()

        try:
            for evt in self._d.events():
                yield Event.from_libevdev_event(evt)
        except libevdev.EventsDroppedException:
            # The kernel buffer overflowed. Either replay libevdev's view of the
            # missed state changes, or discard them and carry on from here.
            logger.warning("Events dropped on %s, resyncing", self.device_path)
            for evt in self._d.sync():
                if self.allow_auto_sync:
                    yield Event.from_libevdev_event(evt)
        except OSError as exc:
            translated = _translate_oserror(exc)
            if translated is exc:
                raise
            raise translated from exc

    async def events(self) -> collections.abc.AsyncIterator[Event]:
        if self._d is None:
            raise NotInContextError()

        while True:
            await trio.lowlevel.wait_readable(self._f)
            for evt in self.pending_events():
                yield evt

    def __exit__(self, _exc_type, _exc_value, _traceback):
        self.ungrab()
        return False  # to reraise exceptions if needed


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("device", type=pathlib.Path)
    parser.add_argument("output", type=argparse.FileType(mode="w"))
    parser.add_argument("--shared", action="store_true", help="don't grab the device")
    args = parser.parse_args()

    async def dump():
        with EventDevice(args.device, exclusive=not args.shared, allow_auto_sync=True) as device:
            args.output.write(f"# {args.device}\n")
            async for evt in device.events():
                args.output.write(evt.to_log() + ",\n")

    trio.run(dump)
