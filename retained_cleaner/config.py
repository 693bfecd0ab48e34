"""Configuration loaded from a JSON file.

Usage:
    from retained_cleaner.config import load_settings
    settings = load_settings("config.json")   # raises ConfigError

Example file:
    {
        "broker": "tcp://localhost:1883",
        "username": "",
        "password": "",
        "clientID": "retained-cleaner",
        "topic": "home/sensors",
        "qos": 1
    }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from retained_cleaner.errors import ConfigError
from retained_cleaner.topics import validate_topic

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"
CONFIG_ENV_VAR = "RETAINED_CLEANER_CONFIG"

#: scheme -> (paho transport, default port)
_SCHEMES: dict[str, tuple[str, int]] = {
    "tcp": ("tcp", 1883),
    "mqtt": ("tcp", 1883),
    "ws": ("websockets", 80),
}


class BrokerAddress(BaseModel):
    """Host, port and transport parsed from the ``broker`` URI."""

    host: str
    port: int
    transport: str = "tcp"
    path: str = "/mqtt"


def parse_broker_uri(uri: str) -> BrokerAddress:
    """Parse ``tcp://host:port``, ``mqtt://host:port`` or ``ws://host:port/path``.

    Raises:
        ValueError: unknown scheme, missing host or bad port.
    """
    parsed = urlparse(uri)
    scheme = parsed.scheme.lower()
    if scheme not in _SCHEMES:
        raise ValueError(
            f"unsupported broker scheme {parsed.scheme!r} in {uri!r} "
            f"(expected one of: {', '.join(sorted(_SCHEMES))})"
        )
    if not parsed.hostname:
        raise ValueError(f"broker URI {uri!r} has no host")

    transport, default_port = _SCHEMES[scheme]
    try:
        port = parsed.port or default_port
    except ValueError as exc:
        raise ValueError(f"broker URI {uri!r} has an invalid port") from exc

    path = parsed.path if transport == "websockets" and parsed.path else "/mqtt"
    return BrokerAddress(host=parsed.hostname, port=port, transport=transport, path=path)


class Settings(BaseModel):
    """Validated contents of the config file.

    JSON keys are camelCase as in existing config files
    (``clientID``, ``discoveryWindow`` ...); attributes are snake_case.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    broker: str
    username: str = ""
    password: str = Field(default="", repr=False)
    client_id: str = Field(default="", alias="clientID")
    topic: str
    qos: int = Field(default=0, ge=0, le=2)

    # ── Timing (seconds) ────────────────────────────────────────────────────
    #: How long the collector listens for retained replays in default mode.
    discovery_window: float = Field(default=5.0, gt=0, alias="discoveryWindow")
    #: How long the verification pass listens after clearing.
    verify_window: float = Field(default=2.0, gt=0, alias="verifyWindow")
    #: Collector window used by --pollute and --verify.
    fixture_window: float = Field(default=2.0, gt=0, alias="fixtureWindow")
    keepalive: int = Field(default=60, gt=0)
    ack_timeout: float = Field(default=10.0, gt=0, alias="ackTimeout")

    @field_validator("broker")
    @classmethod
    def _check_broker(cls, value: str) -> str:
        parse_broker_uri(value)
        return value

    @field_validator("topic")
    @classmethod
    def _check_topic(cls, value: str) -> str:
        return validate_topic(value)

    @property
    def address(self) -> BrokerAddress:
        return parse_broker_uri(self.broker)


def resolve_config_path(cli_path: str | None = None) -> Path:
    """Pick the config path: explicit flag, then env var, then ``config.json``."""
    if cli_path:
        return Path(cli_path)
    return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_settings(path: str | os.PathLike) -> Settings:
    """Read and validate the JSON config file at *path*.

    Raises:
        ConfigError: the file cannot be read, is not JSON, or fails validation.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config file {path}: {exc}") from exc

    logger.debug(
        "Loaded config from %s: broker=%s client_id=%r topic=%r qos=%d",
        path, settings.broker, settings.client_id, settings.topic, settings.qos,
    )
    return settings
