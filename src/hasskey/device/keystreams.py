# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import logging
import typing
from contextlib import aclosing

from ..commontypes import TRACE
from .hwtypes import DeviceIdentity, KeyEvent, KeyPress, KeyState

if typing.TYPE_CHECKING:
    import collections.abc

    from .deviceutil import EventDevice
    from .eventsource import Event

logger = logging.getLogger(__name__)


def normalize(event: Event, device: str) -> typing.Optional[KeyEvent]:
    """Turn one raw input event into a KeyEvent for the named device.

    Only EV_KEY events with a press or release value produce output. Autorepeat (value 2)
    is dropped quietly; any other value is dropped with a warning.
    """
    if not event.is_key:
        return None
    match event.value:
        case KeyPress.RELEASED:
            return KeyEvent(device=device, key=event.name, value=KeyState.UP)
        case KeyPress.PRESSED:
            return KeyEvent(device=device, key=event.name, value=KeyState.DOWN)
        case KeyPress.REPEATED:
            logger.log(TRACE, "Dropping autorepeat of %s on %s", event.name, device)
            return None
        case _:
            logger.warning("Dropping %s on %s with unexpected value %r", event.name, device, event.value)
            return None


class ActiveStream:
    """An opened device node plus the identity it matched, producing normalized KeyEvents."""

    def __init__(self, identity: DeviceIdentity, device: EventDevice):
        self.identity = identity
        self.device = device

    @property
    def device_node(self):
        return self.identity.device_node

    async def events(self) -> collections.abc.AsyncIterator[KeyEvent]:
        async with aclosing(self.device.events()) as raw_events:
            async for raw in raw_events:
                logger.log(TRACE, "%s: %s", self.identity.name, raw.to_log())
                event = normalize(raw, self.identity.name)
                if event is not None:
                    yield event

    def close(self):
        self.device.ungrab()

    def __repr__(self):
        return f"<ActiveStream {self.identity.name!r} at {str(self.identity.device_node)!r}>"
