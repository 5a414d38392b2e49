"""
Configuration files are YAML documents holding a single mapping, e.g.:

.. code-block:: yaml

    server: zabbix.example.com
    port: 10051
    connect_timeout: 5
    write_timeout: 5
    read_timeout: 15
    clock: omit
    host: web-01
    host_metadata: Linux web

Every key is optional. Missing keys take the library defaults.
"""

import logging

import yaml

from zbxsender import serialization
from zbxsender.exceptions import ConfigError
from zbxsender.sender import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    ClockPolicy,
)
from typing import Any, Dict

logger = logging.getLogger(__name__)


DEFAULTS = {
    "server": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "connect_timeout": DEFAULT_CONNECT_TIMEOUT,
    "write_timeout": DEFAULT_WRITE_TIMEOUT,
    "read_timeout": DEFAULT_READ_TIMEOUT,
    "clock": ClockPolicy.Omit.value,
    "host": None,
    "host_metadata": None,
}


def _check_str(name, value):
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{name}' must be a non-empty string, got {value!r}")


def _check_port(name, value):
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        raise ConfigError(f"'{name}' must be a port number, got {value!r}")


def _check_timeout(name, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"'{name}' must be a positive number, got {value!r}")


def _check_clock(name, value):
    choices = [policy.value for policy in ClockPolicy]
    if value not in choices:
        raise ConfigError(f"'{name}' must be one of {choices}, got {value!r}")


VALIDATORS = {
    "server": _check_str,
    "port": _check_port,
    "connect_timeout": _check_timeout,
    "write_timeout": _check_timeout,
    "read_timeout": _check_timeout,
    "clock": _check_clock,
    "host": _check_str,
    "host_metadata": _check_str,
}


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """ Check a configuration mapping and merge it over the defaults.

    :raises ConfigError: if the mapping holds unknown keys or invalid values.
    """
    unknown = sorted(set(config) - set(VALIDATORS))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    for name, value in config.items():
        VALIDATORS[name](name, value)

    merged = dict(DEFAULTS)
    merged.update(config)
    return merged


def load_config(path: str) -> Dict[str, Any]:
    """ Load and validate a YAML configuration file.

    :param path: The path of the configuration file.

    :returns: The configuration merged over the defaults.

    :raises ConfigError: if the file can not be read or is invalid.
    """
    try:
        with open(path, "rb") as fd:
            data = fd.read()
    except OSError as exc:
        raise ConfigError(f"Can't read configuration file {path}: {exc}") from exc

    try:
        config = serialization.loads(data, "yaml")
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigError(
            f"Configuration file {path} must hold a mapping, got {type(config).__name__}"
        )

    logger.debug(f"Loaded configuration from {path}")

    return validate_config(config)
