# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

# Device event stages
# discovery: enumerate the input subsystem once, then follow udev hotplug notifications
# matching: walk each candidate's properties (and its ancestors') against the configured filters
# streams: one task per opened node, normalizing raw EV_KEY events into KeyEvents
# fan-in: every stream task feeds one shared channel that the dispatch loop drains
