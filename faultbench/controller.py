"""Operator screen logic of the three-stage fault test."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from .layout import Measurements
from .validation import clamp, parse_float

STAGE = "stage"
QUANTITY = "quantity"
INPUT = "input"
PRE_FAULT = "pre_fault"
FAULT = "fault"
POST_FAULT = "post_fault"
MEASUREMENTS = "measurements"
START = "start"
DI0 = "di0"
DI1 = "di1"
TIMER = "timer"
SECONDS = "seconds"
DO0 = "do0"
DO1 = "do1"

WHITE = (0xFF, 0xFF, 0xFF)
RED = (0xFF, 0x00, 0x00)
GREEN = (0x00, 0xFF, 0x00)
BACKGROUND = (0xEF, 0xF0, 0xF1)

RUN_REGISTER = 1120
AUX_REGISTER = 1156
VOLTAGE_REGISTER = 1152
FREQUENCY_REGISTER = 1154
CURRENT_REGISTER = 1159
ANGLE_REGISTER = 1160
CHRONOMETER_TOGGLE = 3220
DO0_ON, DO0_OFF = 3190, 3191
DO1_ON, DO1_OFF = 3192, 3193


class Stage(Enum):
    PRE_FAULT = "PRÉ-FALTA"
    FAULT = "FALTA"
    POST_FAULT = "PÓS-FALTA"


class Quantity(Enum):
    VOLTAGE = "TENSÃO"
    CURRENT = "CORRENTE"
    ANGLE = "ÂNGULO"
    FREQUENCY = "FREQUÊNCIA"
    DURATION = "DURAÇÃO"


_FIELDS = {
    Quantity.VOLTAGE: "voltage",
    Quantity.CURRENT: "current",
    Quantity.ANGLE: "angle",
    Quantity.FREQUENCY: "frequency",
    Quantity.DURATION: "duration",
}

_LIMITS = {
    Quantity.VOLTAGE: (0.0, 450.0),
    Quantity.CURRENT: (0.0, 10.0),
    Quantity.ANGLE: (-180.0, 180.0),
    Quantity.FREQUENCY: (45.0, 70.0),
    Quantity.DURATION: (1.0, 60.0),
}

_STAGE_WIDGETS = {
    Stage.PRE_FAULT: PRE_FAULT,
    Stage.FAULT: FAULT,
    Stage.POST_FAULT: POST_FAULT,
}


@dataclass
class StageSettings:
    """Source values applied during one stage of the test."""

    voltage: float = 115.0
    current: float = 0.0
    angle: float = 0.0
    frequency: float = 60.0
    duration: float = 2.0


def _default_settings() -> dict[Stage, StageSettings]:
    return {
        Stage.PRE_FAULT: StageSettings(duration=2.0),
        Stage.FAULT: StageSettings(duration=10.0),
        Stage.POST_FAULT: StageSettings(duration=5.0),
    }


@dataclass
class TestState:
    """Selections, settings and sequencing counters of the screen."""

    __test__ = False

    stage: Stage = Stage.PRE_FAULT
    quantity: Quantity = Quantity.VOLTAGE
    settings: dict[Stage, StageSettings] = field(default_factory=_default_settings)
    pending: float | None = None
    low: float = 0.0
    high: float = 450.0
    ticks: int = 0
    phase: int = 0
    hold: int = 0

    def __post_init__(self) -> None:
        if self.pending is None:
            self.pending = self.value()

    def value(self) -> float:
        """Setting selected by the current stage and quantity."""
        return getattr(self.settings[self.stage], _FIELDS[self.quantity])

    def set_value(self, value: float) -> None:
        """Store value into the setting selected by stage and quantity."""
        setattr(self.settings[self.stage], _FIELDS[self.quantity], value)


def format_stage(stage: Stage, settings: StageSettings) -> str:
    """Summary text of one stage's settings."""
    return (
        f"{stage.value}\n\n"
        "Tensão : %g V\nCorrente : %g A\nÂngulo : %g°\nFrequência : %g Hz\nDuração : %g s"
        % (settings.voltage, settings.current, settings.angle,
           settings.frequency, settings.duration)
    )


def format_measurements(measurements: Measurements) -> str:
    """Phasor readout of the three voltages and currents."""
    m = measurements
    return (
        "V1 =%7g ∠%5g° V\nV2 =%7g ∠%5g° V\nV3 =%7g ∠%5g° V\n"
        "I1 =%7g ∠%5g° A\nI2 =%7g ∠%5g° A\nI3 =%7g ∠%5g° A"
        % (m.v1 * 0.01, m.arg_v1 * 0.1, m.v2 * 0.01, m.arg_v2 * 0.1,
           m.v3 * 0.01, m.arg_v3 * 0.1, m.i1 * 0.001, m.arg_i1 * 0.1,
           m.i2 * 0.001, m.arg_i2 * 0.1, m.i3 * 0.001, m.arg_i3 * 0.1)
    )


def format_timer(state: TestState, measurements: Measurements) -> str:
    """Chronometer reading in seconds, held at zero while a fresh fault settles.

    Counts down state.hold as a side effect once the fault has started.
    """
    show = False
    if state.phase < 3:
        if state.hold:
            state.hold -= 1
            show = state.hold == 0
        else:
            show = True
    seconds = (measurements.timer & 0xFFFF) * 0.001 if show else 0.0
    return "%6.3f" % seconds


class _View(Protocol):
    def set_text(self, widget: str, text: str) -> None: ...

    def set_background(self, widget: str, color: tuple[int, int, int]) -> None: ...

    def insert_item(self, widget: str, text: str) -> None: ...


class FaultTestController:
    """Drives the test set through pre-fault, fault and post-fault stages."""

    def __init__(self, view: _View, writer: Callable[[int, int], None], tick_ms: int = 100) -> None:
        if tick_ms <= 0:
            raise ValueError(f"tick interval must be positive, got {tick_ms}")
        self.view = view
        self.tick_ms = tick_ms
        self.state = TestState()
        self._writer = writer

    def _write(self, address: int, value: float, scale: int = 1) -> None:
        self._writer(address, math.trunc(round(value * scale, 6)))

    def _write_stage(self, stage: Stage) -> None:
        settings = self.state.settings[stage]
        self._write(VOLTAGE_REGISTER, settings.voltage, 100)
        self._write(FREQUENCY_REGISTER, settings.frequency, 100)
        self._write(CURRENT_REGISTER, settings.current, 1000)
        self._write(ANGLE_REGISTER, settings.angle, 1000)

    def _show_pending(self) -> None:
        self.view.set_text(INPUT, "%g" % self.state.pending)

    def start(self) -> None:
        """Fill the choice lists, show the selected value and switch the source off."""
        for stage in Stage:
            self.view.insert_item(STAGE, stage.value)
        for quantity in Quantity:
            self.view.insert_item(QUANTITY, quantity.value)
        self._show_pending()
        self._write(RUN_REGISTER, 0)
        self._write(AUX_REGISTER, 0)

    def refresh(self, measurements: Measurements) -> None:
        """Show inputs, timer, stage settings and measurements."""
        m = measurements
        for widget, name, flag in ((DI0, "DI0", m.di0), (DI1, "DI1", m.di1),
                                   (TIMER, "TIMER", m.status)):
            self.view.set_text(widget, f"{name} {'ON' if flag else 'OFF'}")
            self.view.set_background(widget, WHITE if flag else BACKGROUND)
        self.view.set_text(SECONDS, format_timer(self.state, m))
        for stage, widget in _STAGE_WIDGETS.items():
            self.view.set_text(widget, format_stage(stage, self.state.settings[stage]))
        self.view.set_text(MEASUREMENTS, format_measurements(m))

    def tick(self, measurements: Measurements) -> None:
        """Advance the test sequence by one timer period."""
        state = self.state
        settings = state.settings
        per_second = 1000 // self.tick_ms
        state.ticks += 1
        if state.phase == 4:
            self.view.set_text(START, "STOP")
            self.view.set_background(PRE_FAULT, WHITE)
            state.ticks = 0
            self._write_stage(Stage.PRE_FAULT)
            self._write(RUN_REGISTER, 1)
            state.phase = 3
        elif state.phase == 3:
            if state.ticks > per_second * settings[Stage.PRE_FAULT].duration:
                self.view.set_background(FAULT, WHITE)
                state.ticks = 0
                state.hold = per_second
                self._write(CHRONOMETER_TOGGLE, 1)
                self._write_stage(Stage.FAULT)
                state.phase = 2
        elif state.phase == 2:
            if (state.ticks > per_second * settings[Stage.FAULT].duration
                    or measurements.di0 or measurements.di1):
                self.view.set_background(POST_FAULT, WHITE)
                state.ticks = 0
                if measurements.status:
                    self._write(CHRONOMETER_TOGGLE, 1)
                self._write_stage(Stage.POST_FAULT)
                state.phase = 1
                self.view.set_background(FAULT, RED if measurements.status else GREEN)
        elif state.phase == 1:
            if state.ticks > per_second * settings[Stage.POST_FAULT].duration or state.ticks < 0:
                for widget in _STAGE_WIDGETS.values():
                    self.view.set_background(widget, BACKGROUND)
                if measurements.status:
                    self._write(CHRONOMETER_TOGGLE, 1)
                self._write(RUN_REGISTER, 0)
                self._write(AUX_REGISTER, 0)
                state.phase = 0
                self.view.set_text(START, "START")

    def button(self, widget: str) -> None:
        """Handle a click: start or stop the test, or store the typed value."""
        if widget == START:
            if not self.state.phase:
                self._write(RUN_REGISTER, 1)
                self.state.phase = 4
            else:
                self.state.ticks = -100
                self.state.phase = 1
        elif widget == INPUT:
            self.state.set_value(self.state.pending)

    def button_pressed(self, widget: str) -> None:
        """Switch a digital output on while its button is held."""
        if widget == DO0:
            self._write(DO0_ON, 1)
        elif widget == DO1:
            self._write(DO1_ON, 1)

    def button_released(self, widget: str) -> None:
        """Switch a digital output off when its button is let go."""
        if widget == DO0:
            self._write(DO0_OFF, 1)
        elif widget == DO1:
            self._write(DO1_OFF, 1)

    def text(self, widget: str, text: str) -> None:
        """Handle a selection in a choice list or text typed into the input."""
        state = self.state
        if widget == QUANTITY:
            state.quantity = Quantity(text)
            state.pending = state.value()
            self._show_pending()
            state.low, state.high = _LIMITS[state.quantity]
        elif widget == STAGE:
            state.stage = Stage(text)
            state.pending = state.value()
            self._show_pending()
        elif widget == INPUT:
            try:
                number = parse_float(text)
            except ValueError:
                self._show_pending()
                return
            limited = clamp(number, state.low, state.high)
            if limited != number:
                self.view.set_text(INPUT, "%g" % limited)
            state.pending = limited