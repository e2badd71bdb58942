"""HD44780 character display driver over GPIO pins.

Drives an HD44780-compatible display (typically 16x2) in 4-bit mode through
six GPIO lines: register select (RS), enable strobe (E) and data lines D4-D7.
Every byte is sent as two nibbles, high nibble first, each latched by a pulse
on E.

The driver only needs pins it can enable, switch to output and drive, so it
runs unchanged against :class:`hwtest_gpio.sysfs.SysfsBackend` or an
:class:`hwtest_gpio.emulator.Emulator`.

Example:
    >>> lcd = create_lcd(LcdConfig(rs=7, e=8, d4=25, d5=24, d6=23, d7=18))
    >>> lcd.initialize()
    >>> lcd.write_string("Hello", line=1)
    >>> lcd.close()
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from hwtest_gpio.backend import PinIO
from hwtest_gpio.config import LcdConfig
from hwtest_gpio.pin import GpioPin
from hwtest_gpio.types import Direction

logger = logging.getLogger(__name__)

LINE_WIDTH = 16
"""Characters written per line."""

_LINE_ADDRESS_STRIDE = 0x40

# Instruction set
_CMD_CLEAR_DISPLAY = 0x01
_CMD_RETURN_HOME = 0x02
_CMD_ENTRY_MODE = 0x04
_CMD_DISPLAY_CONTROL = 0x08
_CMD_FUNCTION_SET = 0x20
_CMD_SET_CGRAM_ADDRESS = 0x40
_CMD_SET_DDRAM_ADDRESS = 0x80


class Hd44780Lcd:
    """HD44780 display attached through six GPIO pins.

    Args:
        rs: Register select pin (low for instructions, high for characters).
        e: Enable strobe pin.
        d4: Data bit 4 pin.
        d5: Data bit 5 pin.
        d6: Data bit 6 pin.
        d7: Data bit 7 pin.
        delay: Settle time in seconds around each strobe.
        pulse: Width of the enable pulse in seconds.
        sleep: Sleep function, replaceable for tests.
    """

    def __init__(
        self,
        rs: GpioPin,
        e: GpioPin,
        d4: GpioPin,
        d5: GpioPin,
        d6: GpioPin,
        d7: GpioPin,
        *,
        delay: float = 50e-6,
        pulse: float = 50e-6,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._rs = rs
        self._e = e
        self._data = (d4, d5, d6, d7)
        self._delay = delay
        self._pulse = pulse
        self._sleep = sleep

    @property
    def pins(self) -> tuple[GpioPin, ...]:
        """All pins in RS, E, D4-D7 order."""
        return (self._rs, self._e, *self._data)

    def initialize(self) -> None:
        """Enable all pins as outputs and put the display in 4-bit mode.

        Leaves the display cleared, on, with the cursor hidden and
        incrementing.
        """
        for pin in self.pins:
            pin.enable().set_direction(Direction.OUT)

        self._write_byte(0x33, command=True)
        self._write_byte(0x32, command=True)
        self.entry_mode(increment=True, shift=False)
        self.display_on_off_control(display_on=True, cursor_on=False, blink_on=False)
        self.function_set(data_length_8bit=False, two_lines=True, large_font=False)
        self.clear_display()
        self._sleep(self._delay)
        logger.debug("HD44780 initialized on pins %s", [pin.number for pin in self.pins])

    def close(self) -> None:
        """Disable all pins."""
        for pin in self.pins:
            pin.disable()

    def write_string(self, text: str, line: int = 1) -> None:
        """Write text to a display line, padded or cut to the line width.

        Args:
            text: ASCII text; see the datasheet for the character table.
            line: 1-based line number.

        Raises:
            ValueError: If line is < 1 or text is not ASCII.
        """
        if line < 1:
            raise ValueError(f"line must be >= 1, got {line}")
        data = text.ljust(LINE_WIDTH)[:LINE_WIDTH].encode("ascii")

        self.set_ddram_address((line - 1) * _LINE_ADDRESS_STRIDE)
        for byte in data:
            self._write_byte(byte)

    def clear_display(self) -> Hd44780Lcd:
        """Blank the display and move to position 0."""
        self._write_byte(_CMD_CLEAR_DISPLAY, command=True)
        return self

    def return_home(self) -> Hd44780Lcd:
        """Move to position 0 and undo any display shift."""
        self._write_byte(_CMD_RETURN_HOME, command=True)
        return self

    def entry_mode(self, increment: bool = True, shift: bool = False) -> Hd44780Lcd:
        """Set cursor move direction and display shift on data writes."""
        byte = _CMD_ENTRY_MODE
        if increment:
            byte |= 0x02
        if shift:
            byte |= 0x01
        self._write_byte(byte, command=True)
        return self

    def display_on_off_control(
        self, display_on: bool = True, cursor_on: bool = True, blink_on: bool = True
    ) -> Hd44780Lcd:
        """Switch display, cursor and cursor blink on or off."""
        byte = _CMD_DISPLAY_CONTROL
        if display_on:
            byte |= 0x04
        if cursor_on:
            byte |= 0x02
        if blink_on:
            byte |= 0x01
        self._write_byte(byte, command=True)
        return self

    def function_set(
        self, data_length_8bit: bool = True, two_lines: bool = True, large_font: bool = True
    ) -> Hd44780Lcd:
        """Select interface width, line count and font size."""
        byte = _CMD_FUNCTION_SET
        if data_length_8bit:
            byte |= 0x10
        if two_lines:
            byte |= 0x08
        if large_font:
            byte |= 0x04
        self._write_byte(byte, command=True)
        return self

    def set_cgram_address(self, address: int) -> Hd44780Lcd:
        """Set the character generator RAM address (6 bits)."""
        self._write_byte(_CMD_SET_CGRAM_ADDRESS | (address & 0x3F), command=True)
        return self

    def set_ddram_address(self, address: int) -> Hd44780Lcd:
        """Set the display data RAM address (7 bits) used for reads and writes."""
        self._write_byte(_CMD_SET_DDRAM_ADDRESS | (address & 0x7F), command=True)
        return self

    def _write_byte(self, byte: int, command: bool = False) -> None:
        self._rs.set_value(not command)
        self._write_nibble(byte >> 4)
        self._write_nibble(byte)

    def _write_nibble(self, nibble: int) -> None:
        for bit, pin in enumerate(self._data):
            pin.set_value(bool(nibble & (1 << bit)))
        self._toggle_enable()

    def _toggle_enable(self) -> None:
        self._sleep(self._delay)
        self._e.set_value(True)
        self._sleep(self._pulse)
        self._e.set_value(False)
        self._sleep(self._delay)


def create_lcd(
    config: LcdConfig,
    backend: PinIO | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Hd44780Lcd:
    """Create an HD44780 driver from a pin configuration.

    Args:
        config: LCD pin assignment and timing.
        backend: Backend shared by all six pins; defaults to sysfs.
        sleep: Sleep function, replaceable for tests.

    Returns:
        An uninitialized driver; call :meth:`Hd44780Lcd.initialize`.
    """
    return Hd44780Lcd(
        GpioPin(config.rs, backend),
        GpioPin(config.e, backend),
        GpioPin(config.d4, backend),
        GpioPin(config.d5, backend),
        GpioPin(config.d6, backend),
        GpioPin(config.d7, backend),
        delay=config.delay,
        pulse=config.pulse,
        sleep=sleep,
    )
