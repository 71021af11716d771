# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import logging
import os
import re
import typing

from .hwtypes import PropertySource

if typing.TYPE_CHECKING:
    import collections.abc

    from ..settings import DeviceConfig

logger = logging.getLogger(__name__)

# udev device trees are a handful of levels deep (input -> usb interface -> usb device -> hub -> controller ...)
MAX_ANCESTOR_DEPTH = 64

_MISSING = object()


def ancestors(device: PropertySource) -> collections.abc.Iterator[PropertySource]:
    "Yield the device itself, then each parent up to the root of the bus hierarchy."
    current = device
    depth = 0
    while current is not None and depth < MAX_ANCESTOR_DEPTH:
        yield current
        current = current.parent
        depth += 1


def lookup_property(device: PropertySource, key: str) -> typing.Optional[bytes]:
    """Find the value of a udev property on the device or its nearest ancestor carrying it.

    Values come back as raw bytes so filter patterns can match arbitrary property contents.
    """
    for node in ancestors(device):
        value = node.properties.get(key, _MISSING)
        if value is _MISSING:
            continue
        if isinstance(value, bytes):
            return value
        return os.fsencode(value)
    return None


def rule_matches(device: PropertySource, rule: collections.abc.Mapping[str, typing.Optional[re.Pattern[bytes]]]) -> bool:
    for key, pattern in rule.items():
        value = lookup_property(device, key)
        if value is None:
            return False
        # A key without a pattern never matches, even when the property is present.
        if pattern is None:
            return False
        if pattern.fullmatch(value) is None:
            return False
    return True


def match_device(device: PropertySource, devices: collections.abc.Sequence[DeviceConfig]) -> typing.Optional[str]:
    "Return the name of the first configured device whose filter matches, or None."
    for config in devices:
        if rule_matches(device, config.filter):
            return config.name
    return None
