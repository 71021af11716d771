# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import enum
import pathlib
import typing

import msgspec

from ..commontypes import HasskeyError


class HardwareError(HasskeyError):
    pass


class DeviceDisconnectedError(HardwareError):
    pass


class DeviceGrabError(HardwareError):
    pass


class KeyPress(enum.IntEnum):
    RELEASED = 0
    PRESSED = 1
    REPEATED = 2


@enum.unique
class KeyState(enum.Enum):
    UP = "UP"
    DOWN = "DOWN"


class KeyEvent(msgspec.Struct, frozen=True):
    device: str
    key: str
    value: KeyState

    @classmethod
    def down(cls, device: str, key: str):
        return cls(device=device, key=key, value=KeyState.DOWN)

    @classmethod
    def up(cls, device: str, key: str):
        return cls(device=device, key=key, value=KeyState.UP)


class DeviceIdentity(msgspec.Struct, frozen=True):
    name: str
    device_node: pathlib.Path


@enum.unique
class HotplugAction(enum.Enum):
    ADD = "add"
    REMOVE = "remove"
    OTHER = "other"

    @classmethod
    def from_udev(cls, action: typing.Optional[str]):
        try:
            return cls(action)
        except ValueError:
            return cls.OTHER


class HotplugNotification(msgspec.Struct, frozen=True):
    action: HotplugAction
    device: typing.Any


class PropertySource(typing.Protocol):
    """Anything shaped like a udev device: its own properties plus a link to its parent."""

    @property
    def properties(self) -> typing.Mapping[str, str]: ...

    @property
    def parent(self) -> typing.Optional[PropertySource]: ...
