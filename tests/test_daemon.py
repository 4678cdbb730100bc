import struct
import threading

import pytest

from faultbench.daemon import ModbusDaemon, ProcessImage
from faultbench.layout import (
    LIFE_COUNTER_BASE,
    POLL_CYCLES,
    READ_ERROR_COUNT_BASE,
    SHARED_MEMORY_SIZE,
    WRITE_ERROR_COUNT_BASE,
    Measurements,
)
from faultbench.modbus import ModbusError


class RegisterClient:
    """Answers every register with its own address."""

    def __init__(self, fail_at=(), fail_writes=False, on_request=None):
        self.requests = []
        self.writes = []
        self.fail_at = set(fail_at)
        self.fail_writes = fail_writes
        self.on_request = on_request

    def request(self, slave, function, start, count):
        self.requests.append((slave, function, start, count))
        if self.on_request is not None:
            self.on_request(self)
        if start in self.fail_at:
            raise ModbusError("timeout")
        return b"".join(struct.pack(">H", start + n) for n in range(count))

    def write(self, slave, function, payload):
        self.writes.append((slave, function, payload))
        if self.fail_writes:
            raise ModbusError("no answer")
        return payload


def make_daemon(client):
    daemon = ModbusDaemon(client, ProcessImage(SHARED_MEMORY_SIZE))
    daemon.idle_time = 0
    return daemon


def test_image_round_trip_negative_value():
    image = ProcessImage(SHARED_MEMORY_SIZE)
    image.write(4, struct.pack(">h", -5))
    assert image.read_short(2) == -5
    assert len(bytes(image)) == SHARED_MEMORY_SIZE


def test_image_rejects_write_past_end():
    image = ProcessImage(SHARED_MEMORY_SIZE)
    with pytest.raises(ValueError):
        image.write(SHARED_MEMORY_SIZE - 1, b"\x00\x01")


def test_image_rejects_bad_index():
    image = ProcessImage(SHARED_MEMORY_SIZE)
    with pytest.raises(IndexError):
        image.read_short(SHARED_MEMORY_SIZE // 2)
    with pytest.raises(IndexError):
        image.read_short(-1)


def test_image_rejects_empty_size():
    with pytest.raises(ValueError):
        ProcessImage(0)


def test_poll_cycle_stores_block():
    client = RegisterClient()
    daemon = make_daemon(client)
    cycle = POLL_CYCLES[0]
    stored = daemon.poll_cycle(0, cycle.slave, cycle.function, cycle.start, cycle.count)
    assert stored == cycle.num_bytes
    assert daemon.image.read_short(0) == 1140
    assert client.requests == [(cycle.slave, cycle.function, cycle.start, cycle.count)]


def test_poll_cycle_failure_counts_error():
    daemon = make_daemon(RegisterClient(fail_at={1140}))
    assert daemon.poll_cycle(0, 13, 3, 1140, 6) == 0
    assert daemon.read_error_count == 1
    assert daemon.image.read_short(READ_ERROR_COUNT_BASE // 2) == 1


def test_run_once_fills_measurements():
    daemon = make_daemon(RegisterClient())
    assert daemon.run_once() is True
    m = Measurements.from_bytes(bytes(daemon.image))
    assert m.v1 == 1140
    assert m.i3 == 1145
    assert m.arg_v1 == 1227
    assert m.arg_v2 == 1247
    assert m.arg_i1 == 1237
    assert m.arg_i3 == 1277
    assert m.do0 == 3194
    assert m.di1 == 3197
    assert m.timer0 == 3200
    assert m.status == 3222
    assert m.timer == 3223
    assert daemon.image.read_short(LIFE_COUNTER_BASE // 2) == 1


def test_run_once_stops_at_first_failure():
    client = RegisterClient(fail_at={1247})
    daemon = make_daemon(client)
    assert daemon.run_once() is False
    assert [request[2] for request in client.requests] == [1140, 1227, 1247]
    assert daemon.read_error_count == 1


def test_life_counter_wraps():
    daemon = make_daemon(RegisterClient())
    daemon.life_counter = 256 * 128 - 1
    daemon.run_once()
    assert daemon.life_counter == 0
    assert daemon.image.read_short(LIFE_COUNTER_BASE // 2) == 0


def test_process_writes_sends_queue_in_order():
    client = RegisterClient()
    daemon = make_daemon(client)
    daemon.submit(13, 6, b"\x04\x60\x00\x01")
    daemon.submit(13, 6, b"\x04\x84\x00\x00")
    assert daemon.process_writes() == 2
    assert client.writes == [(13, 6, b"\x04\x60\x00\x01"), (13, 6, b"\x04\x84\x00\x00")]
    assert daemon.process_writes() == 0


def test_write_failure_counts_error():
    daemon = make_daemon(RegisterClient(fail_writes=True))
    daemon.submit(13, 6, b"\x00\x00\x00\x00")
    daemon.process_writes()
    assert daemon.write_error_count == 1
    assert daemon.image.read_short(WRITE_ERROR_COUNT_BASE // 2) == 1


def test_run_until_stopped():
    stop = threading.Event()

    def stop_after_pass(client):
        if len(client.requests) >= len(POLL_CYCLES):
            stop.set()

    client = RegisterClient(on_request=stop_after_pass)
    daemon = make_daemon(client)
    daemon.submit(13, 6, b"\x04\x60\x00\x00")
    daemon.run(stop)
    assert daemon.life_counter == 1
    assert len(client.requests) == len(POLL_CYCLES)
    assert client.writes == [(13, 6, b"\x04\x60\x00\x00")]


def test_run_with_stop_set_only_publishes_counters():
    stop = threading.Event()
    stop.set()
    client = RegisterClient()
    daemon = make_daemon(client)
    daemon.read_error_count = 7
    daemon.run(stop)
    assert client.requests == []
    assert daemon.image.read_short(READ_ERROR_COUNT_BASE // 2) == 7