import ipaddress
import socket

import psutil
import pytest

from adsrouter.config import FingerprintConfig, PlcFingerprint
from adsrouter.network import (
    ADS_PORT,
    InterfaceError,
    PlcScanner,
    build_net_id,
    get_local_ip,
)


@pytest.fixture
def listening_port():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(16)
    yield server.getsockname()[1]
    server.close()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def _scanner(ports, subnets=()):
    return PlcScanner(FingerprintConfig(subnets=list(subnets), ports=ports), timeout=1.0)


def test_build_net_id_from_address():
    net_id = build_net_id(ipaddress.IPv4Address("10.0.0.5"), b"\x01\x01")
    assert net_id == bytes([10, 0, 0, 5, 1, 1])


def test_build_net_id_from_string_and_ints():
    assert build_net_id("192.168.1.20", [1, 1]) == bytes([192, 168, 1, 20, 1, 1])


def test_build_net_id_rejects_bad_suffix():
    with pytest.raises(ValueError):
        build_net_id("10.0.0.5", b"\x01")


def test_get_local_ip_unknown_interface():
    with pytest.raises(InterfaceError):
        get_local_ip("no-such-interface-0")


def test_get_local_ip_on_loopback():
    name = next(
        iface
        for iface, addrs in psutil.net_if_addrs().items()
        if any(a.family == socket.AF_INET and a.address == "127.0.0.1" for a in addrs)
    )
    address = get_local_ip(name)
    assert address.is_loopback


def test_validate_bind_open_required_port(listening_port):
    scanner = _scanner([PlcFingerprint(listening_port, "ADS", True)])
    assert scanner.validate_bind(f"127.0.0.1:{ADS_PORT}") is True


def test_validate_bind_closed_required_port(closed_port):
    scanner = _scanner([PlcFingerprint(closed_port, "ADS", True)])
    assert scanner.validate_bind(f"127.0.0.1:{ADS_PORT}") is False


def test_validate_bind_closed_optional_port(listening_port, closed_port):
    scanner = _scanner(
        [PlcFingerprint(closed_port, "Optional", False), PlcFingerprint(listening_port, "ADS", True)]
    )
    assert scanner.validate_bind(f"127.0.0.1:{ADS_PORT}") is True


@pytest.mark.parametrize("address", ["127.0.0.1", "a:b:c", "[::1", "[::1]"])
def test_validate_bind_rejects_malformed_address(address):
    assert _scanner([]).validate_bind(address) is False


def test_validate_bind_accepts_bracketed_host():
    assert _scanner([]).validate_bind("[::1]:48898") is True


def test_discover_finds_local_host(listening_port):
    scanner = _scanner([PlcFingerprint(listening_port, "ADS", True)], ["127.0.0."])
    found = scanner.discover()
    assert found == f"127.0.0.1:{ADS_PORT}"
    assert scanner.bound_address == found


def test_discover_uses_cache(listening_port):
    scanner = _scanner([PlcFingerprint(listening_port, "ADS", True)], ["127.0.0."])
    first = scanner.discover()
    scanner.fingerprint.subnets = []
    assert scanner.discover() == first


def test_discover_ignores_closed_optional_port(listening_port, closed_port):
    scanner = _scanner(
        [PlcFingerprint(closed_port, "Optional", False), PlcFingerprint(listening_port, "ADS", True)],
        ["127.0.0."],
    )
    assert scanner.discover() == f"127.0.0.1:{ADS_PORT}"


def test_discover_without_subnets_returns_none():
    scanner = _scanner([PlcFingerprint(ADS_PORT, "ADS", True)], [])
    assert scanner.discover() is None
    assert scanner.bound_address is None