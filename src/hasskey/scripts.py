# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import argparse
import os
import pathlib
import sys

import trio

from .commontypes import SettingsError
from .device.hardware import Hardware
from .device.matching import ancestors, lookup_property, match_device
from .device.udev import UdevSource
from .settings import DEFAULT_CONFIG_PATH, Settings


def describe_device(device, device_node: pathlib.Path, settings=None, show_properties=False, out=sys.stdout):
    name = lookup_property(device, "NAME")
    out.write(f"{device_node}: {os.fsdecode(name) if name is not None else '(no name)'}\n")
    if settings is not None:
        matched = match_device(device, settings.devices)
        out.write(f"  matches: {matched if matched is not None else '(nothing)'}\n")
    if show_properties:
        for depth, node in enumerate(ancestors(device)):
            out.write(f"  [{depth}] {getattr(node, 'sys_path', '?')}\n")
            for key, value in sorted(node.properties.items()):
                out.write(f"      {key}={value}\n")


list_devices_parser = argparse.ArgumentParser(prog="hasskey-devices", description="List input event devices and what they match.")
list_devices_parser.add_argument("-c", "--config", type=pathlib.Path)
list_devices_parser.add_argument("-p", "--properties", action="store_true", help="show udev properties along the ancestor chain")


def list_devices(settings=None, show_properties=False, udev=None, out=sys.stdout):
    if udev is None:
        udev = UdevSource()
    for device, device_node in udev.enumerate():
        describe_device(device, device_node, settings=settings, show_properties=show_properties, out=out)


def list_devices_cli(argv=sys.argv):
    args = list_devices_parser.parse_args(argv[1:])
    settings = None
    if args.config is not None:
        try:
            settings = Settings.load(args.config)
        except SettingsError as exc:
            print(exc, file=sys.stderr)
            return 1
    list_devices(settings=settings, show_properties=args.properties)
    return 0


print_events_parser = argparse.ArgumentParser(prog="hasskey-events", description="Print the key events hasskey would send.")
print_events_parser.add_argument("-c", "--config", type=pathlib.Path, default=DEFAULT_CONFIG_PATH)


def print_events_cli(argv=sys.argv):
    args = print_events_parser.parse_args(argv[1:])
    try:
        settings = Settings.load(args.config)
    except SettingsError as exc:
        print(exc, file=sys.stderr)
        return 1

    async def runner():
        async with trio.open_nursery() as nursery:
            hardware = Hardware(settings.devices)
            await nursery.start(hardware.run)
            await hardware.print_events()

    trio.run(runner)
    return 0
