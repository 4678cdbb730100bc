"""Command line entry point of the Modbus polling daemon."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import threading
from dataclasses import fields

from .daemon import IDLE_TIME, ModbusDaemon, ProcessImage
from .layout import SHARED_MEMORY_SIZE, Measurements
from .modbus import ModbusError, RtuClient

DEFAULT_HOST = "172.17.21.51"
DEFAULT_PORT = 502
DEFAULT_TIMEOUT = 1.0

log = logging.getLogger(__name__)


class _Connection:
    """Stream socket that connects on first use and again after a failure."""

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self._address = (host, port)
        self._timeout = timeout
        self._sock: socket.socket | None = None

    def _socket(self) -> socket.socket:
        if self._sock is None:
            self._sock = socket.create_connection(self._address, timeout=self._timeout)
        return self._sock

    def sendall(self, data: bytes) -> None:
        try:
            self._socket().sendall(data)
        except OSError:
            self.close()
            raise

    def recv(self, size: int) -> bytes:
        try:
            return self._socket().recv(size)
        except OSError:
            self.close()
            raise

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None


class _ResettingClient:
    """RTU client that drops the connection whenever an exchange fails."""

    def __init__(self, connection: _Connection) -> None:
        self._connection = connection
        self._client = RtuClient(connection)

    def request(self, slave: int, function: int, start: int, count: int) -> bytes:
        try:
            return self._client.request(slave, function, start, count)
        except ModbusError:
            self._connection.close()
            raise

    def write(self, slave: int, function: int, payload: bytes) -> bytes:
        try:
            return self._client.write(slave, function, payload)
        except ModbusError:
            self._connection.close()
            raise


def build_parser() -> argparse.ArgumentParser:
    """Argument parser of the daemon command."""
    parser = argparse.ArgumentParser(
        prog="faultbench",
        description="Poll the test set over Modbus RTU and mirror its registers.",
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help="address of the Modbus gateway")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="TCP port of the gateway")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="socket timeout in seconds")
    parser.add_argument("--idle-time", type=float, default=IDLE_TIME,
                        help="pause before each bus exchange in seconds")
    parser.add_argument("--once", action="store_true",
                        help="run a single polling pass and print the values read")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every exchange")
    return parser


def _report(daemon: ModbusDaemon) -> None:
    measurements = Measurements.from_bytes(bytes(daemon.image))
    for item in fields(measurements):
        print(f"{item.name}={getattr(measurements, item.name)}")
    print(f"life_counter={daemon.life_counter}")
    print(f"read_error_count={daemon.read_error_count}")
    print(f"write_error_count={daemon.write_error_count}")


def main(argv: list[str] | None = None) -> int:
    """Run the polling daemon; return the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    if args.timeout <= 0:
        print("faultbench: timeout must be positive", file=sys.stderr)
        return 2
    if args.idle_time < 0:
        print("faultbench: idle time must not be negative", file=sys.stderr)
        return 2

    connection = _Connection(args.host, args.port, args.timeout)
    daemon = ModbusDaemon(_ResettingClient(connection), ProcessImage(SHARED_MEMORY_SIZE))
    daemon.idle_time = args.idle_time
    try:
        if args.once:
            ok = daemon.run_once()
            _report(daemon)
            return 0 if ok else 1
        log.info("polling %s:%d", args.host, args.port)
        stop = threading.Event()
        try:
            daemon.run(stop)
        except KeyboardInterrupt:
            stop.set()
        return 0
    finally:
        connection.close()


if __name__ == "__main__":
    sys.exit(main())