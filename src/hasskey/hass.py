# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
from __future__ import annotations

import logging
import typing
import urllib.parse

import msgspec
import requests
import trio

from .commontypes import SettingsError

if typing.TYPE_CHECKING:
    from .device.hwtypes import KeyEvent
    from .settings import HomeAssistantSettings

logger = logging.getLogger(__name__)

EVENT_TYPE = "hasskey"


def events_url(base_url: str) -> str:
    parsed = urllib.parse.urlsplit(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise SettingsError(f"Invalid URL: {base_url!r}")
    return urllib.parse.urljoin(urllib.parse.urljoin(base_url, "api/events/"), EVENT_TYPE)


class HomeAssistantClient:
    """Fires one Home Assistant event per KeyEvent. Failures are logged and the event is dropped."""

    def __init__(self, settings: HomeAssistantSettings, session: typing.Optional[requests.Session] = None):
        self.url = events_url(settings.url)
        self.timeout = settings.timeout
        self._token = settings.token.read()
        self.session = session if session is not None else requests.Session()
        self._encoder = msgspec.json.Encoder()

    def _post(self, event: KeyEvent):
        response = self.session.post(
            self.url,
            data=self._encoder.encode(event),
            headers={"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()

    async def deliver(self, event: KeyEvent) -> bool:
        try:
            await trio.to_thread.run_sync(self._post, event)
        except requests.RequestException as exc:
            logger.error("Failed to send event %r: %s", event, exc)
            return False
        except Exception:
            logger.exception("Failed to send event %r", event)
            return False
        logger.debug("Event delivered: %r", event)
        return True

    def close(self):
        self.session.close()
