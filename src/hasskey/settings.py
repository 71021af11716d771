# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later
import collections
import dataclasses
import logging
import os
import pathlib
import re
import typing

import cattrs
import yaml

from .commontypes import SettingsError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = pathlib.Path("./config.yaml")
DEFAULT_TIMEOUT = 10.0
HOME_ASSISTANT_ALIASES = ("home-assistant", "hass")
SECRET_SOURCES = ("value", "file", "env")


@dataclasses.dataclass(frozen=True, kw_only=True)
class Secret:
    value: typing.Optional[str] = None
    file: typing.Optional[pathlib.Path] = None
    env: typing.Optional[str] = None

    def read(self) -> str:
        if self.value is not None:
            return self.value
        if self.file is not None:
            try:
                return self.file.read_text().rstrip()
            except OSError as exc:
                raise SettingsError(f"Failed to read secret file: {self.file}") from exc
        try:
            return os.environ[self.env]
        except KeyError:
            raise SettingsError(f"Environment variable for secret is not set: {self.env}") from None

    def __repr__(self):
        if self.file is not None:
            return f"Secret(file={str(self.file)!r})"
        if self.env is not None:
            return f"Secret(env={self.env!r})"
        return "Secret(value=<redacted>)"


def structure_secret(v, _typ: type[Secret]):
    if isinstance(v, str):
        return Secret(value=v)
    if not isinstance(v, dict) or len(v) != 1 or next(iter(v)) not in SECRET_SOURCES:
        raise ValueError("Expected a string, {file: path} or {env: NAME}")
    ((source, ref),) = v.items()
    if source == "file":
        return Secret(file=pathlib.Path(ref))
    return Secret(**{source: str(ref)})


def structure_pattern(v, _typ: type[re.Pattern]):
    if isinstance(v, bool) or not isinstance(v, (str, int)):
        raise ValueError(f"Expected a regular expression, got {v!r}")
    return re.compile(str(v).encode())


settings_converter = cattrs.Converter()
settings_converter.register_structure_hook(pathlib.Path, lambda v, _: pathlib.Path(v))
settings_converter.register_structure_hook(re.Pattern, structure_pattern)
settings_converter.register_structure_hook(Secret, structure_secret)


@dataclasses.dataclass(frozen=True, kw_only=True)
class HomeAssistantSettings:
    url: str
    token: Secret
    timeout: float = DEFAULT_TIMEOUT


@dataclasses.dataclass(frozen=True, kw_only=True)
class DeviceConfig:
    name: str
    # property name -> pattern over the raw property value; None never matches
    filter: dict[str, typing.Optional[re.Pattern]]
    grab: bool = True


@dataclasses.dataclass(kw_only=True)
class Settings:
    path: pathlib.Path
    home_assistant: HomeAssistantSettings
    devices: list[DeviceConfig]

    def check(self):
        counts = collections.Counter(device.name for device in self.devices)
        duplicates = sorted(name for name, count in counts.items() if count > 1)
        if duplicates:
            raise SettingsError(f"Duplicate device names in {self.path}: {', '.join(duplicates)}")
        if not self.devices:
            logger.warning("No devices configured in %s", self.path)
        for device in self.devices:
            for key, pattern in device.filter.items():
                if pattern is None:
                    logger.warning("Filter %s on device %s has no pattern, so it will never match", key, device.name)

    @classmethod
    def from_raw(cls, raw: typing.Any, src: pathlib.Path):
        if not isinstance(raw, dict):
            raise SettingsError(f"Expected a mapping at the top of config file: {src}")
        raw = dict(raw)
        for alias in HOME_ASSISTANT_ALIASES:
            if alias in raw:
                raw.setdefault("home_assistant", raw.pop(alias))
        raw["path"] = src
        try:
            settings = settings_converter.structure(raw, cls)
        except cattrs.BaseValidationError as exc:
            problems = "; ".join(cattrs.transform_error(exc))
            raise SettingsError(f"Invalid config file: {src}: {problems}") from exc
        settings.check()
        return settings

    @classmethod
    def load(cls, src: pathlib.Path):
        try:
            with src.open() as f:
                raw = yaml.safe_load(f)
        except OSError as exc:
            raise SettingsError(f"Failed to read config file: {src}") from exc
        except yaml.YAMLError as exc:
            raise SettingsError(f"Failed to parse config file: {src}: {exc}") from exc
        return cls.from_raw(raw, src)

    @classmethod
    def for_test(cls):
        return cls.from_raw(
            {
                "home_assistant": {"url": "http://homeassistant.test:8123/", "token": "test-token", "timeout": 1},
                "devices": [{"name": "kbd", "filter": {"ID_INPUT_KEYBOARD": "^1$"}}],
            },
            pathlib.Path("test.config.yaml"),
        )
