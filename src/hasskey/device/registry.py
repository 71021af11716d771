# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import copy
import logging
import math
import pathlib
import typing
from contextlib import aclosing

import trio
from trio_util import AsyncValue

from .hwtypes import DeviceDisconnectedError, KeyEvent

if typing.TYPE_CHECKING:
    from .keystreams import ActiveStream

logger = logging.getLogger(__name__)


class StreamRegistry:
    """The growable set of open device streams, fanned in to a single channel.

    Each registered stream is pumped by its own task in the given nursery, so adding a
    stream never disturbs a consumer already waiting in next(). A stream that ends or
    fails is dropped from the set; the others keep running.
    """

    streams: AsyncValue[dict[pathlib.Path, ActiveStream]]

    def __init__(self, nursery: trio.Nursery):
        self._nursery = nursery
        self._send_channel, self._receive_channel = trio.open_memory_channel[KeyEvent](math.inf)
        self.streams = AsyncValue({})

    def __contains__(self, device_node: pathlib.Path):
        return device_node in self.streams.value

    def __len__(self):
        return len(self.streams.value)

    def register(self, stream: ActiveStream) -> bool:
        """Start pumping events from stream. Returns False if its node already has a stream."""
        device_node = stream.device_node
        if device_node in self.streams.value:
            logger.debug("Already streaming %s, not registering %r", device_node, stream)
            return False
        new_streams = copy.copy(self.streams.value)
        new_streams[device_node] = stream
        self.streams.value = new_streams
        self._nursery.start_soon(self._pump, stream, self._send_channel.clone(), name=f"stream {stream.identity.name}")
        return True

    def _forget(self, stream: ActiveStream):
        if self.streams.value.get(stream.device_node) is not stream:
            return
        new_streams = copy.copy(self.streams.value)
        del new_streams[stream.device_node]
        self.streams.value = new_streams

    async def _pump(self, stream: ActiveStream, send_channel: trio.MemorySendChannel[KeyEvent]):
        try:
            async with send_channel, aclosing(stream.events()) as events:
                async for event in events:
                    await send_channel.send(event)
            logger.info("Stream ended for %r", stream)
        except DeviceDisconnectedError:
            logger.info("Device went away: %r", stream)
        except OSError:
            logger.exception("Failed to read from %r", stream)
        finally:
            stream.close()
            self._forget(stream)

    async def next(self) -> KeyEvent:
        return await self._receive_channel.receive()

    def __aiter__(self):
        return self

    async def __anext__(self) -> KeyEvent:
        return await self.next()
