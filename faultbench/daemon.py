"""Polling daemon that mirrors slave registers into a process image."""

from __future__ import annotations

import logging
import queue
import struct
import threading
import time

from .layout import (
    LIFE_COUNTER_BASE,
    POLL_CYCLES,
    READ_ERROR_COUNT_BASE,
    SHARED_MEMORY_SIZE,
    WRITE_ERROR_COUNT_BASE,
)
from .modbus import ModbusError

IDLE_TIME = 4 / 96
COUNTER_LIMIT = 256 * 128

log = logging.getLogger(__name__)


def _bump(counter: int) -> int:
    counter += 1
    return 0 if counter >= COUNTER_LIMIT else counter


def _encode(value: int) -> bytes:
    return struct.pack(">h", value)


class ProcessImage:
    """Fixed-size byte area shared between the daemon and its readers."""

    def __init__(self, size: int = SHARED_MEMORY_SIZE) -> None:
        if size <= 0:
            raise ValueError(f"process image size must be positive, got {size}")
        self._data = bytearray(size)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    def write(self, offset: int, data: bytes) -> None:
        """Store data at offset; the whole block must fit in the image."""
        data = bytes(data)
        if offset < 0 or offset + len(data) > len(self._data):
            raise ValueError(
                f"{len(data)} bytes at offset {offset} do not fit in "
                f"a {len(self._data)} byte image"
            )
        with self._lock:
            self._data[offset : offset + len(data)] = data

    def read_short(self, index: int) -> int:
        """Signed big-endian 16-bit value at word index."""
        offset = 2 * index
        if index < 0 or offset + 2 > len(self._data):
            raise IndexError(f"word index {index} outside the process image")
        with self._lock:
            return struct.unpack_from(">h", self._data, offset)[0]


class ModbusDaemon:
    """Polls the configured register blocks and forwards queued writes."""

    def __init__(self, client, image: ProcessImage) -> None:
        self.client = client
        self.image = image
        self.idle_time = IDLE_TIME
        self.life_counter = 0
        self.read_error_count = 0
        self.write_error_count = 0
        self._pending: queue.SimpleQueue[tuple[int, int, bytes]] = queue.SimpleQueue()
        self._bus = threading.Lock()

    def _idle(self) -> None:
        if self.idle_time > 0:
            time.sleep(self.idle_time)

    def submit(self, slave: int, function: int, payload: bytes) -> None:
        """Queue a raw function to be sent to a slave."""
        self._pending.put((slave, function, bytes(payload)))

    def poll_cycle(self, offset: int, slave: int, function: int, start: int, count: int) -> int:
        """Read one block into the image at offset; return the bytes stored, 0 on failure."""
        self._idle()
        with self._bus:
            try:
                data = self.client.request(slave, function, start, count)
            except (ModbusError, OSError) as exc:
                log.warning("read of %d registers at %d from slave %d failed: %s",
                            count, start, slave, exc)
                data = b""
        if data:
            self.image.write(offset, data)
            log.debug("cycle slave=%d function=%d start=%d bytes=%d",
                      slave, function, start, len(data))
            return len(data)
        self.read_error_count = _bump(self.read_error_count)
        self.image.write(READ_ERROR_COUNT_BASE, _encode(self.read_error_count))
        return 0

    def run_once(self) -> bool:
        """Run one polling pass; True when every block was read."""
        self.life_counter = _bump(self.life_counter)
        self.image.write(LIFE_COUNTER_BASE, _encode(self.life_counter))
        offset = 0
        for cycle in POLL_CYCLES:
            stored = self.poll_cycle(offset, cycle.slave, cycle.function, cycle.start, cycle.count)
            if stored <= 0:
                return False
            offset += stored
        return True

    def process_writes(self) -> int:
        """Send every queued write; return how many were sent."""
        sent = 0
        while True:
            try:
                slave, function, payload = self._pending.get_nowait()
            except queue.Empty:
                return sent
            with self._bus:
                self._idle()
                try:
                    self.client.write(slave, function, payload)
                except (ModbusError, OSError) as exc:
                    log.warning("write of function %d to slave %d failed: %s",
                                function, slave, exc)
                    self.write_error_count = _bump(self.write_error_count)
                    self.image.write(WRITE_ERROR_COUNT_BASE, _encode(self.write_error_count))
                self._idle()
            sent += 1

    def run(self, stop: threading.Event) -> None:
        """Poll and forward writes until stop is set."""
        self.image.write(LIFE_COUNTER_BASE, _encode(self.life_counter))
        self.image.write(READ_ERROR_COUNT_BASE, _encode(self.read_error_count))
        self.image.write(WRITE_ERROR_COUNT_BASE, _encode(self.write_error_count))
        while not stop.is_set():
            self.process_writes()
            self.run_once()
        self.process_writes()