"""Router configuration loaded from a TOML file."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from adsrouter.logger import Component, get_logger

DEFAULT_CONFIG_PATH = Path("configs") / "config.toml"


class ConfigError(Exception):
    """Raised when the configuration cannot be read or decoded."""


@dataclass
class Credentials:
    username: str = ""
    password: str = ""


@dataclass
class PlcFingerprint:
    """One TCP port that a PLC is expected to have open."""

    port: int = 0
    label: str = ""
    required: bool = False


@dataclass
class ProxyConfig:
    ethernet_interface: str = ""
    static_netid_suffix: str = ""


@dataclass
class PLCConfig:
    credentials: Credentials = field(default_factory=Credentials)


@dataclass
class FingerprintConfig:
    subnets: list[str] = field(default_factory=list)
    ports: list[PlcFingerprint] = field(default_factory=list)


@dataclass
class Config:
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    plc: PLCConfig = field(default_factory=PLCConfig)
    fingerprint: FingerprintConfig = field(default_factory=FingerprintConfig)


_BOOLS = {
    **dict.fromkeys(("1", "t", "T", "TRUE", "true", "True"), True),
    **dict.fromkeys(("", "0", "f", "F", "FALSE", "false", "False"), False),
}


def _get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    value = next((v for k, v in data.items() if str(k).lower() == key.lower()), None)
    if value is None:
        return default
    if isinstance(default, Mapping) and not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' expected a map, got '{type(value).__name__}'")
    return value


def _convert(value: Any, kind: type, name: str) -> Any:
    """Weakly convert a scalar to str, int or bool."""
    if value is None:
        return kind()
    if not isinstance(value, (str, bool, int, float)):
        raise ConfigError(f"'{name}' expected a {kind.__name__}, got '{type(value).__name__}'")
    try:
        if kind is str:
            return str(int(value) if isinstance(value, bool) else value)
        if not isinstance(value, str):
            return kind(value)
        if kind is bool:
            return _BOOLS[value]
        return int(value.strip(), 0) if value.strip() else 0
    except (KeyError, ValueError) as exc:
        raise ConfigError(f"cannot parse '{name}' as {kind.__name__}: {value!r}") from exc


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _parse_port(entry: Any, index: int) -> PlcFingerprint:
    prefix = f"fingerprint.ports[{index}]"
    if not isinstance(entry, Mapping):
        raise ConfigError(f"'{prefix}' expected a map, got '{type(entry).__name__}'")
    return PlcFingerprint(
        *(_convert(_get(entry, key), kind, f"{prefix}.{key}")
          for key, kind in (("port", int), ("label", str), ("required", bool)))
    )


def parse_config(data: Mapping[str, Any]) -> Config:
    """Build a Config from decoded TOML data; key names are case-insensitive."""
    proxy = _get(data, "proxy", {})
    credentials = _get(_get(data, "plc", {}), "credentials", {})
    fingerprint = _get(data, "fingerprint", {})
    return Config(
        proxy=ProxyConfig(
            _convert(_get(proxy, "ethernetInterface"), str, "proxy.ethernetInterface"),
            _convert(_get(proxy, "staticNetidSuffix"), str, "proxy.staticNetidSuffix"),
        ),
        plc=PLCConfig(Credentials(
            _convert(_get(credentials, "username"), str, "plc.credentials.username"),
            _convert(_get(credentials, "password"), str, "plc.credentials.password"),
        )),
        fingerprint=FingerprintConfig(
            subnets=[_convert(s, str, f"fingerprint.subnets[{i}]")
                     for i, s in enumerate(_as_list(_get(fingerprint, "subnets")))],
            ports=[_parse_port(e, i) for i, e in enumerate(_as_list(_get(fingerprint, "ports")))],
        ),
    )


def load_config(path: str | Path | None = None) -> Config:
    """Read and decode the TOML configuration file (``configs/config.toml`` by default)."""
    log = get_logger()
    target = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        with target.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        log.error(Component.SERVICE, "Error reading config file: %v", exc)
        raise ConfigError(f"error reading config file {target}: {exc}") from exc
    log.debug(Component.SERVICE, "Config file found: %s", target)
    try:
        config = parse_config(data)
    except ConfigError as exc:
        log.error(Component.SERVICE, "Error unmarshalling config file: %v", exc)
        raise
    log.info(Component.SERVICE, "Config loaded successfully")
    return config