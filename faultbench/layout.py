"""Layout of the shared process image written by the polling daemon."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from itertools import accumulate
from typing import ClassVar

SHARED_MEMORY = "/srv/automation/shm/modbus.shm"
MAILBOX = "/srv/automation/mbx/modbus.mbx"
SHARED_MEMORY_SIZE = 46

LIFE_COUNTER_BASE = 40
READ_ERROR_COUNT_BASE = 42
WRITE_ERROR_COUNT_BASE = 44

SLAVE = 13
READ_HOLDING_REGISTERS = 3


@dataclass(frozen=True)
class PollCycle:
    """One block of registers read from a slave on every polling pass."""

    slave: int
    function: int
    start: int
    count: int

    @property
    def num_bytes(self) -> int:
        return 2 * self.count


POLL_CYCLES: tuple[PollCycle, ...] = (
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1140, 6),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1227, 1),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1247, 1),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1267, 1),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1237, 1),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1257, 1),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 1277, 1),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 3194, 4),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 3200, 2),
    PollCycle(SLAVE, READ_HOLDING_REGISTERS, 3222, 2),
)


def cycle_offsets() -> list[int]:
    """Byte offset in the process image at which each poll cycle is stored."""
    return list(accumulate((cycle.num_bytes for cycle in POLL_CYCLES[:-1]), initial=0))


_FORMAT = ">20h"


@dataclass
class Measurements:
    """Register values of the test set, in process image order."""

    SIZE: ClassVar[int] = struct.calcsize(_FORMAT)

    v1: int = 0
    v2: int = 0
    v3: int = 0
    i1: int = 0
    i2: int = 0
    i3: int = 0
    arg_v1: int = 0
    arg_v2: int = 0
    arg_v3: int = 0
    arg_i1: int = 0
    arg_i2: int = 0
    arg_i3: int = 0
    do0: int = 0
    do1: int = 0
    di0: int = 0
    di1: int = 0
    timer0: int = 0
    timer1: int = 0
    status: int = 0
    timer: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "Measurements":
        """Decode the leading measurement block of a process image."""
        if len(data) < cls.SIZE:
            raise ValueError(
                f"process image holds {len(data)} bytes, need at least {cls.SIZE}"
            )
        return cls(*struct.unpack_from(_FORMAT, data))

    def to_bytes(self) -> bytes:
        """Encode the values as big-endian signed 16-bit registers."""
        try:
            return struct.pack(_FORMAT, *astuple(self))
        except struct.error as exc:
            raise ValueError(f"register value out of range: {exc}") from exc