"""Command entry point: discover the PLC and accept ADS client connections."""

from __future__ import annotations

import argparse
import socket
import threading
from collections.abc import Sequence

from adsrouter import proxy
from adsrouter.config import DEFAULT_CONFIG_PATH, Config, ConfigError, load_config
from adsrouter.logger import Component, LogLevel, get_logger, init_global_logger
from adsrouter.network import PlcScanner
from adsrouter.shutdown import GracefulShutdown

LISTEN_ADDRESS = ":48898"


def serve_connection(conn: socket.socket, scanner: PlcScanner) -> None:
    """Make sure a PLC is reachable, then hand the client to the proxy.

    Logs a fatal message (raising SystemExit) when no PLC can be found.
    """
    log = get_logger()
    try:
        peer = "%s:%s" % conn.getpeername()[:2]
    except (OSError, TypeError):
        peer = "unknown"
    address = scanner.bound_address or ""
    log.info(Component.SERVICE, "MAIN: New connection from %s", peer)
    log.info(Component.SERVICE, "MAIN: Current PLC Address: %s", address)

    if not scanner.validate_bind(address):
        log.info(Component.SERVICE, "MAIN: Cached PLC invalid, rescanning...")
        address = scanner.discover() or ""
    if not address:
        try:
            log.fatal(Component.SERVICE, "MAIN: No valid PLC available, closing connection.")
        finally:
            conn.close()
    proxy.handle_client(conn)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="adsrouter", description="Route ADS traffic to a discovered PLC.")
    parser.add_argument("--config", help=f"configuration file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--log-dir", default="logs", help="directory for log files")
    parser.add_argument("--listen", default=LISTEN_ADDRESS, help="address to accept ADS clients on")
    args = parser.parse_args(argv)
    log = init_global_logger(args.log_dir, LogLevel.INFO, list(Component))

    try:
        config = load_config(args.config)
    except ConfigError:
        config = Config()
    log.info(Component.SERVICE, "INIT: PLC Port Fingerprint loaded with %d ports", len(config.fingerprint.ports))
    log.info(Component.SERVICE, "INIT: PLC Subnet is set to %s", config.fingerprint.subnets)
    log.info(Component.SERVICE, "INIT: Starting VPN-ADS Router...")

    scanner = PlcScanner(config.fingerprint)
    if not scanner.discover():
        log.fatal(Component.SERVICE, "Could not discover PLC at startup. Exiting.")

    try:
        server = proxy._open_server(args.listen)
    except (OSError, ValueError) as exc:
        log.error(Component.SERVICE, "Failed to listen on %s: %v", args.listen, exc)
        return 1
    log.error(Component.SERVICE, "Listening on %s for ADS connections...", args.listen)

    shutdown = GracefulShutdown(install_signals=threading.current_thread() is threading.main_thread())
    failed = threading.Event()

    def worker(conn: socket.socket) -> None:
        try:
            serve_connection(conn, scanner)
        except SystemExit:
            failed.set()
            shutdown.cancel()
        finally:
            shutdown.done()

    with server:
        server.settimeout(0.5)
        while not shutdown.cancelled():
            try:
                conn, _ = server.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                log.error(Component.SERVICE, "MAIN: Connection accept error: %v", exc)
                continue
            conn.setblocking(True)
            shutdown.add(1)
            threading.Thread(target=worker, args=(conn,), daemon=True).start()

    shutdown.wait(5.0)
    return 1 if failed.is_set() else 0