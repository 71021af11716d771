# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import logging

# Below DEBUG; used for per-raw-event chatter.
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class HasskeyError(Exception):
    pass


class SettingsError(HasskeyError):
    pass


class NotInContextError(Exception):
    def __init__(self):
        return super().__init__("Must be inside an appropriate context manager")
