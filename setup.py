#!/usr/bin/env python

# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

# -*- encoding: utf-8 -*-

from glob import glob
from os.path import basename
from os.path import splitext

from setuptools import find_packages
from setuptools import setup

setup(
    name="hasskey",
    version="0.0.0",
    license="GPL-3.0-or-later",
    description="Forward key presses from Linux input devices to Home Assistant",
    long_description="Watches input devices matched by udev properties and fires a Home Assistant event for every key press and release.",
    author="Rose Davidson",
    author_email="rose@metaclassical.com",
    packages=find_packages("src"),
    package_dir={"": "src"},
    py_modules=[splitext(basename(path))[0] for path in glob("src/*.py")],
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        # complete classifier list: http://pypi.python.org/pypi?%3Aaction=list_classifiers
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Home Automation",
        "Topic :: System :: Hardware",
    ],
    keywords=["home-assistant", "evdev", "udev", "keyboard"],
    python_requires=">=3.10",
    install_requires=[
        "cattrs>=23.1",
        "libevdev>=0.11",
        "msgspec",
        "pyudev>=0.24",
        "PyYAML>=6.0",
        "requests>=2.28",
        "trio>=0.22.0",
        "trio-util>=0.7.0",
    ],
    tests_require=["pytest>=7.0", "pytest-trio>=0.8.0"],
    extras_require={
        "test": ["pytest>=7.0", "pytest-trio>=0.8.0"],
    },
    entry_points={
        "console_scripts": [
            "hasskey=hasskey.app:main",
            "hasskey-devices=hasskey.scripts:list_devices_cli",
            "hasskey-events=hasskey.scripts:print_events_cli",
        ],
    },
)
