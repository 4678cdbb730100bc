"""Modbus RTU polling daemon and fault test controller for a relay test bench."""

__version__ = "1.0.0"