import socket
import threading
import time
from queue import Queue

import pytest

from adsrouter.proxy import (
    ClientMsg,
    handle_client,
    parse_source_net_id,
    start_listener,
    start_scheduler,
)


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _packet(net_id):
    return bytes(10) + bytes(net_id) + bytes(8)


def test_short_payload_gives_default_net_id():
    assert parse_source_net_id(b"\x01" * 15) == "0.0.0.0.0.0"


def test_empty_payload_gives_default_net_id():
    assert parse_source_net_id(b"") == "0.0.0.0.0.0"


def test_source_net_id_read_from_bytes_ten_to_sixteen():
    payload = _packet([192, 168, 1, 10, 1, 1])
    assert parse_source_net_id(payload) == "192.168.1.10.1.1"


def test_exactly_sixteen_bytes_is_enough():
    payload = bytes(10) + bytes([10, 0, 0, 1, 1, 1])
    assert parse_source_net_id(payload) == "10.0.0.1.1.1"


def test_handle_client_queues_packet_and_closes():
    server_side, client_side = socket.socketpair()
    packet = _packet([5, 6, 7, 8, 1, 1])
    client_side.sendall(packet)
    client_side.close()
    queue = Queue()
    handle_client(server_side, queue)
    message = queue.get_nowait()
    assert message == ClientMsg(source_net_id="5.6.7.8.1.1", payload=packet)
    assert queue.empty()
    assert server_side.fileno() == -1


def test_handle_client_splits_large_input():
    server_side, client_side = socket.socketpair()
    data = bytes(range(256)) * 6
    client_side.sendall(data)
    client_side.close()
    queue = Queue()
    handle_client(server_side, queue)
    chunks = []
    while not queue.empty():
        chunks.append(queue.get_nowait().payload)
    assert b"".join(chunks) == data
    assert all(len(chunk) <= 1024 for chunk in chunks)
    assert len(chunks) >= 2


def test_handle_client_logs_end_of_stream(capsys):
    server_side, client_side = socket.socketpair()
    client_side.close()
    queue = Queue()
    handle_client(server_side, queue)
    assert queue.empty()
    assert "Error reading from connection" in capsys.readouterr().err


def test_start_listener_forwards_client_packets():
    port = _free_port()
    queue = Queue()
    address = f"127.0.0.1:{port}"

    def run():
        start_listener(address, queue)

    threading.Thread(target=run, daemon=True).start()
    packet = _packet([1, 2, 3, 4, 1, 1])
    deadline = time.monotonic() + 5
    while True:
        try:
            client = socket.create_connection(("127.0.0.1", port), timeout=1)
            break
        except OSError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)
    with client:
        client.sendall(packet)
        message = queue.get(timeout=5)
    assert message.source_net_id == "1.2.3.4.1.1"
    assert message.payload == packet
    assert parse_source_net_id(message.payload) == message.source_net_id


def test_start_listener_rejects_address_without_port():
    with pytest.raises(ValueError):
        start_listener("localhost", Queue())


def test_scheduler_drains_queue_when_plc_reachable(capsys):
    with socket.create_server(("127.0.0.1", 0)) as plc:
        port = plc.getsockname()[1]
        queue = Queue()
        queue.put(ClientMsg("1.1.1.1.1.1", b"a"))
        queue.put(ClientMsg("2.2.2.2.1.1", b"b"))
        queue.put(None)
        assert start_scheduler(f"127.0.0.1:{port}", queue, 1.0) == 2
        assert queue.empty()
    err = capsys.readouterr().err
    assert "Connected to PLC" in err
    assert "Error processing message" not in err


def test_scheduler_reports_messages_when_plc_unreachable(capsys):
    port = _free_port()
    queue = Queue()
    queue.put(ClientMsg("1.1.1.1.1.1", b"payload"))
    queue.put(None)
    assert start_scheduler(f"127.0.0.1:{port}", queue, 0.5) == 1
    err = capsys.readouterr().err
    assert "Error connecting to PLC" in err
    assert "Error processing message" in err