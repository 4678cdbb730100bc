# faultbench

faultbench talks to a relay test set over Modbus RTU frames carried on a
TCP stream, and holds the logic of a three-stage fault test: pre-fault,
fault and post-fault, each with its own voltage, current, angle,
frequency and duration.

It has no third-party dependencies.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Command line

```
faultbench --help
```

The `faultbench` command connects to the Modbus gateway and polls the
test set, reading each register block of the polling pass into an
in-memory process image. It keeps polling until interrupted with
Ctrl-C. Options:

- `--host` – address of the gateway (default `172.17.21.51`)
- `--port` – TCP port of the gateway (default `502`)
- `--timeout` – socket timeout in seconds (default `1.0`; must be positive)
- `--idle-time` – pause before each bus exchange in seconds (default
  `4/96`; must not be negative)
- `--once` – run a single polling pass, print the decoded measurement
  values and the life and error counters, and exit with status 0 if
  every block was read, 1 otherwise
- `-v`, `--verbose` – log every exchange

The connection is opened on first use and dropped after any failed
exchange, to be opened again on the next one. Invalid option values
exit with status 2.

## Library use

### `faultbench.layout`

The process image layout: `PollCycle` (slave, function, start, count
and `num_bytes`) describes one block of registers read each pass,
`POLL_CYCLES` lists them in order, and `cycle_offsets()` gives the byte
offset at which each block lands. `Measurements` names the twenty
signed 16-bit registers at the start of the image (phase voltages and
currents with their angles, digital outputs and inputs, timers, status
and the trip timer); `Measurements.from_bytes` decodes them and
`to_bytes` encodes them big-endian, raising `ValueError` on short data
or out-of-range values.

### `faultbench.modbus`

RTU framing: `crc16`, `build_request` and `parse_response`, which
checks length, CRC, exception replies and byte counts and raises
`ModbusError` (with `code` set for exception replies). `RtuClient`
wraps any object with `sendall` and `recv` and offers `request`,
`write`, `write_single_register` and `read_registers`.

### `faultbench.daemon`

`ProcessImage` is a fixed-size, thread-safe byte area with `write` and
`read_short`. `ModbusDaemon` runs polling passes with `run_once`,
reads single blocks with `poll_cycle`, queues raw writes with `submit`
and sends them with `process_writes`; `run(stop)` alternates the two
until the `threading.Event` is set. It keeps a life counter and read
and write error counters, all wrapping at 32768, in the image.

### `faultbench.controller`

`FaultTestController(view, writer, tick_ms=100)` is the state machine
of the test. `view` must provide `set_text(widget, text)`,
`set_background(widget, color)` and `insert_item(widget, text)`;
`writer(address, value)` is called for every holding register to
preset on the test set. Call `start`, then `refresh` and `tick` once
per period with fresh `Measurements`; `button`, `button_pressed`,
`button_released` and `text` take operator input. Widgets are named by
the string constants of the module (`START`, `INPUT`, `STAGE`,
`QUANTITY`, `DO0`, `DO1` and so on). `Stage`, `Quantity`,
`StageSettings` and `TestState` hold the selections and settings;
`format_stage`, `format_measurements` and `format_timer` build the
display texts.

### `faultbench.validation`

`parse_float` accepts a whole string as a number (decimal, hexadecimal,
infinity or NaN, leading whitespace allowed) and raises `ValueError`
otherwise or when the value is out of float range; `clamp` limits a
value to a closed range.

## What it does not do

- There is no operator screen. The controller only calls the view
  object it is given; drawing widgets and delivering clicks and typed
  text is up to the caller.
- The process image lives in the daemon's own memory. Nothing shares
  it with other processes, and the command line offers no way to queue
  writes to the daemon; `submit` is available only to code running in
  the same process.
- The command does not run the fault test; it only polls.