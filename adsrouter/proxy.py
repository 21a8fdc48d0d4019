"""Client connection handling and forwarding of ADS packets towards the PLC."""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass
from queue import Queue

from adsrouter.logger import Component, get_logger

READ_SIZE = 1024
QUEUE_SIZE = 100
DEFAULT_TIMEOUT = 0.15
UNKNOWN_NET_ID = "0.0.0.0.0.0"


@dataclass(frozen=True)
class ClientMsg:
    """One packet read from a client, tagged with its AMS source net id."""

    source_net_id: str
    payload: bytes


INCOMING: Queue[ClientMsg | None] = Queue(maxsize=QUEUE_SIZE)


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        number = int(port)
    except ValueError as exc:
        raise ValueError(f"invalid port in address {address!r}") from exc
    if not 0 <= number <= 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host, number


def _open_server(address: str) -> socket.socket:
    """Listen on ``host:port``; an empty host means every interface."""
    return socket.create_server(_parse_address(address))


def _peer_name(conn: socket.socket) -> str:
    try:
        peer = conn.getpeername()
    except OSError:
        return "unknown"
    if isinstance(peer, tuple):
        return f"{peer[0]}:{peer[1]}"
    return str(peer)


def parse_source_net_id(payload: bytes) -> str:
    """Return the dotted source net id at bytes 10..16, or all zeros if too short."""
    if len(payload) < 16:
        return UNKNOWN_NET_ID
    return ".".join(str(b) for b in payload[10:16])


def handle_client(conn: socket.socket, queue: Queue | None = None) -> None:
    """Read packets from one client until it goes away, queueing each one."""
    target = INCOMING if queue is None else queue
    log = get_logger()
    with conn:
        remote = _peer_name(conn)
        log.info(Component.PROXY, "Handling connection from %s", remote)
        while True:
            try:
                data = conn.recv(READ_SIZE)
            except OSError as exc:
                log.error(Component.PROXY, "Error reading from connection %s: %v", remote, exc)
                return
            if not data:
                log.error(Component.PROXY, "Error reading from connection %s: %v", remote, "EOF")
                return
            net_id = parse_source_net_id(data)
            log.debug(Component.PROXY, "Received %d bytes from %s, NetID: %s", len(data), remote, net_id)
            message = ClientMsg(source_net_id=net_id, payload=data)
            target.put(message)
            log.debug(Component.PROXY, "Sent message to router: %v", message)


def start_listener(address: str, queue: Queue | None = None) -> None:
    """Accept clients on ``address`` forever, serving each in its own thread."""
    log = get_logger()
    try:
        server = _open_server(address)
    except (OSError, ValueError) as exc:
        log.error(Component.PROXY, "Error starting listener on %s: %v", address, exc)
        raise
    log.info(Component.PROXY, "Proxy listening on %s", address)
    with server:
        while True:
            try:
                conn, _ = server.accept()
            except OSError as exc:
                log.error(Component.PROXY, "Error accepting connection: %v", exc)
                continue
            log.info(Component.PROXY, "Incomming connection from %s", _peer_name(conn))
            threading.Thread(target=handle_client, args=(conn, queue), daemon=True).start()


def start_scheduler(plc_addr: str, queue: Queue | None = None, timeout: float = DEFAULT_TIMEOUT) -> int:
    """Connect to the PLC and drain queued messages until a ``None`` arrives.

    Returns the number of messages taken from the queue.
    """
    source = INCOMING if queue is None else queue
    log = get_logger()
    plc_conn: socket.socket | None = None
    error: Exception | None = None
    try:
        plc_conn = socket.create_connection(_parse_address(plc_addr), timeout=timeout)
    except (OSError, ValueError) as exc:
        error = exc
        log.error(Component.PROXY, "Error connecting to PLC at %s: %v", plc_addr, exc)
    else:
        log.info(Component.PROXY, "Connected to PLC at %s", plc_addr)

    count = 0
    try:
        for message in iter(source.get, None):
            count += 1
            if error is not None:
                log.error(Component.PROXY, "Error processing message: %v", error)
                log.error(Component.PROXY, "Error processing message: %v", message.payload)
    finally:
        if plc_conn is not None:
            plc_conn.close()
    return count