"""Local address lookup, AMS net id building and PLC discovery by port fingerprint."""

from __future__ import annotations

import ipaddress
import socket
from typing import Iterable

import psutil

from adsrouter.config import FingerprintConfig
from adsrouter.logger import Component, get_logger

ADS_PORT = 48898
DEFAULT_TIMEOUT = 0.15


class InterfaceError(OSError):
    """Raised when a network interface does not exist."""


def get_local_ip(interface_name: str) -> ipaddress.IPv4Address | None:
    """Return the first IPv4 address of an interface, or None if it has none."""
    addresses = psutil.net_if_addrs().get(interface_name)
    if addresses is None:
        get_logger().error(
            Component.NETWORK, "Error getting interface %s: %v", interface_name, "no such network interface"
        )
        raise InterfaceError(f"no such network interface: {interface_name}")
    for address in addresses:
        if address.family == socket.AF_INET:
            return ipaddress.IPv4Address(address.address)
    get_logger().error(Component.NETWORK, "No valid IPv4 address found for interface %s", interface_name)
    return None


def build_net_id(ip: ipaddress.IPv4Address | str | bytes, suffix: bytes | Iterable[int]) -> bytes:
    """Build a six-byte AMS net id from an IPv4 address and a two-byte suffix."""
    tail = bytes(suffix)
    if len(tail) != 2:
        raise ValueError(f"net id suffix must be 2 bytes, got {len(tail)}")
    return ipaddress.IPv4Address(ip).packed + tail


def _split_host_port(address: str) -> tuple[str, str]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {address!r}")
        if address[end + 1 : end + 2] != ":":
            raise ValueError(f"missing port in address {address!r}")
        return address[1:end], address[end + 2 :]
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if ":" in host:
        raise ValueError(f"too many colons in address {address!r}")
    return host, port


class PlcScanner:
    """Finds a PLC by probing hosts for the ports of a fingerprint."""

    def __init__(self, fingerprint: FingerprintConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.fingerprint = fingerprint
        self.timeout = timeout
        self.bound_address: str | None = None

    def _port_open(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def _matches(self, host: str, prefix: str) -> bool:
        log = get_logger()
        for entry in self.fingerprint.ports:
            if self._port_open(host, entry.port):
                log.info(Component.NETWORK, "%sPort %d (%s) open on %s", prefix, entry.port, entry.label, host)
            elif entry.required:
                log.error(
                    Component.NETWORK, "%sRequired port %d (%s) not open on %s", prefix, entry.port, entry.label, host
                )
                return False
            else:
                log.warn(
                    Component.NETWORK,
                    "%sOptional (not required) port %d (%s) not open at %s",
                    prefix,
                    entry.port,
                    entry.label,
                    host,
                )
        return True

    def validate_bind(self, address: str) -> bool:
        """Check that the host of ``address`` still answers on every required port."""
        try:
            host, _ = _split_host_port(address)
        except ValueError as exc:
            get_logger().error(Component.NETWORK, "Invalid cached address: %v", exc)
            return False
        return self._matches(host, "")

    def discover(self) -> str | None:
        """Return ``host:48898`` of the first host matching the fingerprint.

        A cached address that still validates is returned without scanning.
        Logs a fatal message (which exits) when a subnet holds no PLC.
        """
        log = get_logger()
        if self.bound_address and self.validate_bind(self.bound_address):
            log.info(Component.NETWORK, "PLC DISC: Using cached PLC Address: %s", self.bound_address)
            return self.bound_address

        log.info(Component.NETWORK, "PLC DISC: Scanning for PLC...")
        log.info(
            Component.NETWORK,
            "PLC DISC: Attempting to identify PLC with port fingerprint, Can be changed in fingerprint file",
        )
        for subnet in self.fingerprint.subnets:
            for suffix in range(1, 255):
                host = f"{subnet}{suffix}"
                if self._matches(host, "PLC DISC: "):
                    log.info(
                        Component.NETWORK,
                        "PLC DISC: Found device matching fingerprint at %s, likely a PLC, caching IP",
                        host,
                    )
                    self.bound_address = f"{host}:{ADS_PORT}"
                    return self.bound_address
            log.fatal(
                Component.NETWORK, "PLC DISC: No PLC found with fingerprint on subnet %s\n", self.fingerprint.subnets
            )
        return None