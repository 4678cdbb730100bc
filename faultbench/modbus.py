"""Modbus RTU framing and a client running it over a stream socket."""

from __future__ import annotations

import struct

READ_FUNCTIONS = frozenset({1, 2, 3, 4})
WRITE_FUNCTIONS = frozenset({5, 6, 15, 16})
READ_HOLDING_REGISTERS = 3
WRITE_SINGLE_REGISTER = 6


class ModbusError(Exception):
    """A Modbus exchange failed."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


def crc16(data: bytes) -> int:
    """Modbus CRC-16 of data."""
    crc = 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0xA001 if crc & 1 else crc >> 1
    return crc


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be in 0..255, got {value}")


def _check_word(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} must be in 0..65535, got {value}")


def _frame(body: bytes) -> bytes:
    return body + crc16(body).to_bytes(2, "little")


def build_request(slave: int, function: int, start: int, count: int) -> bytes:
    """RTU frame asking a slave for count items starting at start."""
    _check_byte("slave", slave)
    _check_byte("function", function)
    _check_word("start", start)
    _check_word("count", count)
    return _frame(struct.pack(">BBHH", slave, function, start, count))


def parse_response(frame: bytes) -> tuple[int, int, bytes]:
    """Check a response frame and return (slave, function, data)."""
    if len(frame) < 4:
        raise ModbusError(f"response frame too short: {len(frame)} bytes")
    if crc16(frame[:-2]) != int.from_bytes(frame[-2:], "little"):
        raise ModbusError("response CRC mismatch")
    slave, function = frame[0], frame[1]
    body = bytes(frame[2:-2])
    if function & 0x80:
        code = body[0] if body else None
        raise ModbusError(
            f"slave {slave} answered function {function & 0x7F} with exception {code}",
            code=code,
        )
    if function in READ_FUNCTIONS:
        if not body or len(body) - 1 != body[0]:
            raise ModbusError("response byte count does not match its data")
        return slave, function, body[1:]
    if function in WRITE_FUNCTIONS:
        if len(body) != 4:
            raise ModbusError("write response must echo 4 bytes")
        return slave, function, body
    raise ModbusError(f"unsupported function code {function}")


class RtuClient:
    """Modbus RTU master talking through a connected stream socket."""

    def __init__(self, sock) -> None:
        self._sock = sock

    def request(self, slave: int, function: int, start: int, count: int) -> bytes:
        """Send a read request and return the data of the answer."""
        self._sock.sendall(build_request(slave, function, start, count))
        return self._receive()

    def write(self, slave: int, function: int, payload: bytes) -> bytes:
        """Send a raw function with payload and return the data of the answer."""
        _check_byte("slave", slave)
        _check_byte("function", function)
        self._sock.sendall(_frame(bytes((slave, function)) + bytes(payload)))
        return self._receive()

    def write_single_register(self, slave: int, address: int, value: int) -> bytes:
        """Preset one holding register; negative values go out as two's complement."""
        _check_word("address", address)
        if not -0x8000 <= value <= 0xFFFF:
            raise ValueError(f"register value out of range: {value}")
        payload = struct.pack(">HH", address, value & 0xFFFF)
        return self.write(slave, WRITE_SINGLE_REGISTER, payload)

    def read_registers(self, slave: int, start: int, count: int) -> list[int]:
        """Read count holding registers as unsigned 16-bit values."""
        data = self.request(slave, READ_HOLDING_REGISTERS, start, count)
        if len(data) != 2 * count:
            raise ModbusError(f"expected {2 * count} data bytes, got {len(data)}")
        return list(struct.unpack(f">{count}H", data))

    def _receive(self) -> bytes:
        head = self._recv_exact(2)
        function = head[1]
        if function & 0x80:
            rest = self._recv_exact(3)
        elif function in READ_FUNCTIONS:
            byte_count = self._recv_exact(1)
            rest = byte_count + self._recv_exact(byte_count[0] + 2)
        elif function in WRITE_FUNCTIONS:
            rest = self._recv_exact(6)
        else:
            raise ModbusError(f"unsupported function code {function} in response")
        return parse_response(head + rest)[2]

    def _recv_exact(self, size: int) -> bytes:
        received = bytearray()
        while len(received) < size:
            chunk = self._sock.recv(size - len(received))
            if not chunk:
                raise ModbusError("connection closed by peer")
            received += chunk
        return bytes(received)