# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import datetime
import enum

import msgspec

# Mostly we care about EV_KEY. These events have a value of 1 for keydown and 0 for
# keyup, and 2 for autorepeat (key held down). Everything else a keyboard emits
# (EV_SYN, EV_MSC scancodes, EV_LED state) is dropped before it reaches the sink.


class EventType(enum.IntEnum):
    # Used as markers to separate events.
    EV_SYN = 0
    # Used to describe state changes of keyboards, buttons, or other key-like
    # devices.
    EV_KEY = 1
    # Relative axis changes, such as mouse motion.
    EV_REL = 2
    # Absolute axis changes, such as touchpads and joysticks.
    EV_ABS = 3
    # Used to describe miscellaneous input data that do not fit into other types.
    EV_MSC = 4
    # Used to turn LEDs on devices on and off.
    EV_LED = 17
    # Used for autorepeating devices.
    EV_REP = 20


class SynCode(enum.IntEnum):
    SYN_REPORT = 0
    SYN_DROPPED = 3


class Event(msgspec.Struct, frozen=True):
    type: int
    code: int
    value: int
    name: str
    timestamp: datetime.timedelta = datetime.timedelta(0)

    @property
    def is_key(self):
        return self.type == EventType.EV_KEY

    @classmethod
    def from_libevdev_event(cls, evt):
        return cls(
            type=evt.type.value,
            code=evt.code.value,
            value=evt.value,
            name=evt.code.name,
            timestamp=datetime.timedelta(seconds=evt.sec, microseconds=evt.usec),
        )

    @classmethod
    def key(cls, name: str, code: int, value: int):
        return cls(type=EventType.EV_KEY, code=code, value=value, name=name)

    def to_log(self):
        return f"Event(type={self.type}, code={self.code} ({self.name}), value={self.value}, t={self.timestamp.total_seconds():.6f})"
