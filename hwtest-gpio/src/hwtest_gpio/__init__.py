"""GPIO pin control over the Linux sysfs interface, with a test emulator.

This package drives individual GPIO lines through the kernel's file-based
GPIO interface and provides an in-memory replacement for that interface, so
drivers built on top of it can be tested without hardware.

Key components:
    - GpioPin: Per-pin state machine (enable/disable, direction, edge, value)
      enforcing the ordering rules of the kernel interface.
    - Backends: SysfsBackend for real file I/O, MemoryBackend for in-process
      emulation with observer hooks.
    - Emulator: Logs pin actions seen on a MemoryBackend and checks them
      against a queue of expected actions.
    - Hd44780Lcd: Character display driver built on GpioPin.
    - ExportListener: Reports export/unexport requests sent to unix sockets.

Example:
    >>> from hwtest_gpio import ActionKind, Direction, Emulator
    >>> with Emulator() as emu:
    ...     emu.expect([(4, ActionKind.ENABLE, None)])
    ...     pin = emu.pin(4).enable()
    ...     pin.set_direction(Direction.OUT)
"""

from hwtest_gpio.backend import ChannelEvent, ChannelHandle, ChannelOp, PinIO
from hwtest_gpio.config import BASE_DIR_ENV, GpioConfig, LcdConfig, load_config
from hwtest_gpio.emulator import (
    ALL_ACTIONS,
    ActionKind,
    AssertMode,
    Emulator,
    ExcessPolicy,
    LogEntry,
    MissingPolicy,
)
from hwtest_gpio.errors import (
    ChannelIOError,
    ExpectationError,
    GpioError,
    PinArgumentError,
    PinResourceError,
    PinStateError,
)
from hwtest_gpio.lcd import Hd44780Lcd, create_lcd
from hwtest_gpio.listener import ExportListener, ListenerEvent
from hwtest_gpio.memory import MemoryBackend
from hwtest_gpio.pin import GpioPin
from hwtest_gpio.sysfs import DEFAULT_BASE_DIR, SysfsBackend, populate_sysfs_tree
from hwtest_gpio.types import PIN_CHANNELS, Channel, Direction, Edge

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Types
    "Channel",
    "Direction",
    "Edge",
    "PIN_CHANNELS",
    # Pin
    "GpioPin",
    # Backends
    "ChannelEvent",
    "ChannelHandle",
    "ChannelOp",
    "DEFAULT_BASE_DIR",
    "MemoryBackend",
    "PinIO",
    "SysfsBackend",
    "populate_sysfs_tree",
    # Emulator
    "ALL_ACTIONS",
    "ActionKind",
    "AssertMode",
    "Emulator",
    "ExcessPolicy",
    "LogEntry",
    "MissingPolicy",
    # Drivers and tools
    "ExportListener",
    "Hd44780Lcd",
    "ListenerEvent",
    "create_lcd",
    # Config
    "BASE_DIR_ENV",
    "GpioConfig",
    "LcdConfig",
    "load_config",
    # Errors
    "ChannelIOError",
    "ExpectationError",
    "GpioError",
    "PinArgumentError",
    "PinResourceError",
    "PinStateError",
]
