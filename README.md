# adsrouter

`adsrouter` finds a PLC on the local network and accepts ADS client
connections (for example from workstations reaching a site over a VPN) on
its behalf. It locates the PLC by probing the configured subnets for a
fingerprint of open TCP ports, remembers the address it found, and checks
it again whenever a new client connects.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

By default the configuration is read from `configs/config.toml` relative to
the working directory. Key names are matched without regard to case.

```toml
[proxy]
ethernetInterface = "eth0"
staticNetidSuffix = "1.1"

[plc.credentials]
username = "Administrator"
password = "password"

[fingerprint]
# Each entry is a prefix; host numbers 1 to 254 are appended to it.
subnets = ["192.168.1."]

[[fingerprint.ports]]
port = 48898
label = "ADS"
required = true

[[fingerprint.ports]]
port = 8016
label = "Secure ADS"
required = false
```

A host matches when every port marked `required` accepts a TCP connection
within 150 ms. Ports that are not required are only reported in the log
when closed. The first matching host is used and remembered as
`<host>:48898`.

The `proxy` and `plc.credentials` sections are read into the configuration
objects but nothing in the package acts on them yet.

If the file cannot be read or decoded, `load_config` raises
`adsrouter.config.ConfigError`; the `adsrouter` command then carries on with
an empty configuration, which finds no PLC.

## Running

```
adsrouter [--config PATH] [--log-dir DIR] [--listen ADDRESS]
```

- `--config` – configuration file (default `configs/config.toml`)
- `--log-dir` – directory for log files (default `logs`)
- `--listen` – address to accept ADS clients on (default `:48898`, all interfaces)

On startup the command scans for the PLC and exits with status 1 if none is
found. It then accepts clients; for each one it re-validates the remembered
PLC address, rescans if it no longer matches, and exits if no PLC can be
found any more. SIGINT or SIGTERM stops accepting, waits up to five seconds
for running client threads and returns.

Log lines go both to standard error and to a file `app_<timestamp>.log` in
the log directory, tagged with a level and a component name:

```
2024/01/01 12:00:00.000000 [INFO][network] PLC DISC: Scanning for PLC...
```

A message logged at `FATAL` level ends the process (it raises `SystemExit(1)`).

## Using the pieces from Python

```python
from queue import Queue

from adsrouter.config import load_config
from adsrouter.logger import Component, LogLevel, init_global_logger, get_logger
from adsrouter.network import PlcScanner, build_net_id, get_local_ip
from adsrouter.proxy import parse_source_net_id

init_global_logger("logs", LogLevel.INFO, list(Component))
config = load_config("configs/config.toml")

scanner = PlcScanner(config.fingerprint, 0.15)
address = scanner.discover()          # e.g. "192.168.1.10:48898"
if address and scanner.validate_bind(address):
    get_logger().info(Component.SERVICE, "PLC at %s", address)

net_id = build_net_id("10.8.0.2", (1, 1))   # b"\x0a\x08\x00\x02\x01\x01"
source = parse_source_net_id(b"\x00" * 16)  # "0.0.0.0.0.0"
local = get_local_ip("eth0")                # first IPv4 address, or None
```

Notes:

- `PlcScanner.discover()` returns the remembered address without scanning
  while it still validates. When a subnet holds no matching host it logs a
  fatal message, which raises `SystemExit`.
- `get_local_ip` raises `adsrouter.network.InterfaceError` for an unknown
  interface.
- `Logger` can also be used on its own: `Logger(log_dir, level, components)`,
  with `set_level`, `enable_component`, `disable_component` and
  `is_component_enabled`; it works as a context manager that closes the log
  file. `get_logger()` returns a standard-error-only logger when
  `init_global_logger` has not been called.
- `adsrouter.proxy.handle_client(conn, queue)` reads packets of up to 1024
  bytes from a client socket and puts a `ClientMsg(source_net_id, payload)`
  on the queue for each; `start_listener(address, queue)` serves clients in
  threads; `start_scheduler(plc_addr, queue, timeout)` connects to the PLC,
  takes messages off the queue until it receives `None`, and returns how
  many it took.
- `adsrouter.shutdown.GracefulShutdown` counts running workers (`add`,
  `done`, `wait`) and sets a cancellation flag (`cancel`, `cancelled`),
  which SIGINT or SIGTERM also set when signal handlers are installed.

## What it does not do

The package does not route ADS traffic yet. Packets read from clients are
placed on a queue (`adsrouter.proxy.INCOMING` by default, holding at most
100 messages), but they are never sent to the PLC and no responses are sent
back to clients. `start_scheduler` only drains the queue, and the
`adsrouter` command does not start it, so a client that sends more than
100 packets will block. Only IPv4 subnets can be scanned.