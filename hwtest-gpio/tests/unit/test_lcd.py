"""Unit tests for the HD44780 display driver."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from hwtest_gpio.config import LcdConfig
from hwtest_gpio.emulator import ActionKind, Emulator
from hwtest_gpio.lcd import Hd44780Lcd, create_lcd
from hwtest_gpio.memory import MemoryBackend
from hwtest_gpio.types import Channel, Direction

PIN_NAMES = ("rs", "e", "d4", "d5", "d6", "d7")


def _no_sleep(seconds: float) -> None:
    pass


def _make_lcd(**kwargs: object) -> tuple[Hd44780Lcd, MagicMock]:
    """Create a driver on mock pins that share one call recorder."""
    manager = MagicMock()
    pins = {name: getattr(manager, name) for name in PIN_NAMES}
    kwargs.setdefault("sleep", _no_sleep)
    return Hd44780Lcd(**pins, **kwargs), manager  # type: ignore[arg-type]


def _decode(manager: MagicMock) -> list[tuple[bool, int]]:
    """Rebuild the (rs, byte) sequence latched by rising edges on E."""
    levels: dict[str, bool] = {}
    nibbles: list[tuple[bool, int]] = []
    for name, args, _ in manager.mock_calls:
        if not name.endswith(".set_value"):
            continue
        pin = name.split(".")[0]
        if pin == "e":
            if args[0]:
                nibble = sum(int(levels[f"d{4 + bit}"]) << bit for bit in range(4))
                nibbles.append((levels["rs"], nibble))
        else:
            levels[pin] = args[0]
    return [(rs, (high << 4) | low) for (rs, high), (_, low) in zip(nibbles[::2], nibbles[1::2])]


class TestInitialize:
    """Tests for display initialization."""

    def test_configures_pins_as_outputs(self) -> None:
        lcd, manager = _make_lcd()

        lcd.initialize()

        for name in PIN_NAMES:
            pin = getattr(manager, name)
            pin.enable.assert_called_once()
            pin.enable.return_value.set_direction.assert_called_once_with(Direction.OUT)

    def test_command_sequence(self) -> None:
        lcd, manager = _make_lcd()

        lcd.initialize()

        assert _decode(manager) == [
            (False, 0x33),
            (False, 0x32),
            (False, 0x06),
            (False, 0x0C),
            (False, 0x28),
            (False, 0x01),
        ]

    def test_close_disables_pins(self) -> None:
        lcd, manager = _make_lcd()
        lcd.close()
        for name in PIN_NAMES:
            getattr(manager, name).disable.assert_called_once()


class TestCommands:
    """Tests for instruction encoding."""

    @pytest.mark.parametrize(
        ("call", "expected"),
        [
            (lambda lcd: lcd.clear_display(), 0x01),
            (lambda lcd: lcd.return_home(), 0x02),
            (lambda lcd: lcd.entry_mode(increment=False, shift=True), 0x05),
            (lambda lcd: lcd.display_on_off_control(), 0x0F),
            (lambda lcd: lcd.display_on_off_control(False, False, False), 0x08),
            (lambda lcd: lcd.function_set(), 0x3C),
            (lambda lcd: lcd.set_cgram_address(0x7F), 0x7F),
            (lambda lcd: lcd.set_ddram_address(0x45), 0xC5),
        ],
    )
    def test_instruction_bytes(self, call, expected: int) -> None:
        lcd, manager = _make_lcd()

        assert call(lcd) is lcd

        assert _decode(manager) == [(False, expected)]

    def test_strobe_timing(self) -> None:
        sleeps: list[float] = []
        lcd, _ = _make_lcd(delay=1e-3, pulse=2e-3, sleep=sleeps.append)

        lcd.return_home()

        assert sleeps == [1e-3, 2e-3, 1e-3] * 2


class TestWriteString:
    def test_first_line(self) -> None:
        lcd, manager = _make_lcd()

        lcd.write_string("Hi")

        sent = _decode(manager)
        assert sent[0] == (False, 0x80)
        assert sent[1:3] == [(True, ord("H")), (True, ord("i"))]
        assert sent[3:] == [(True, 0x20)] * 14

    def test_second_line_address(self) -> None:
        lcd, manager = _make_lcd()

        lcd.write_string("", line=2)

        assert _decode(manager)[0] == (False, 0xC0)

    def test_long_text_is_cut(self) -> None:
        lcd, manager = _make_lcd()

        lcd.write_string("0123456789abcdefXYZ")

        data = bytes(byte for rs, byte in _decode(manager) if rs)
        assert data == b"0123456789abcdef"

    def test_invalid_line_raises(self) -> None:
        lcd, manager = _make_lcd()
        with pytest.raises(ValueError, match="line must be >= 1"):
            lcd.write_string("Hi", line=0)
        assert _decode(manager) == []

    def test_non_ascii_raises(self) -> None:
        lcd, _ = _make_lcd()
        with pytest.raises(ValueError):
            lcd.write_string("café")


class TestWithEmulator:
    """Tests running the driver on emulated pins."""

    def test_return_home_pin_sequence(self) -> None:
        config = LcdConfig(rs=1, e=2, d4=3, d5=4, d6=5, d7=6)
        with Emulator() as emulator:
            lcd = create_lcd(config, backend=emulator.backend, sleep=_no_sleep)
            lcd.initialize()

            emulator.set_assert_mask(ActionKind.CHANGE_VALUE)
            emulator.expect(
                [
                    (1, ActionKind.CHANGE_VALUE, False),
                    (3, ActionKind.CHANGE_VALUE, False),
                    (4, ActionKind.CHANGE_VALUE, False),
                    (5, ActionKind.CHANGE_VALUE, False),
                    (6, ActionKind.CHANGE_VALUE, False),
                    (2, ActionKind.CHANGE_VALUE, True),
                    (2, ActionKind.CHANGE_VALUE, False),
                    (3, ActionKind.CHANGE_VALUE, False),
                    (4, ActionKind.CHANGE_VALUE, True),
                    (5, ActionKind.CHANGE_VALUE, False),
                    (6, ActionKind.CHANGE_VALUE, False),
                    (2, ActionKind.CHANGE_VALUE, True),
                    (2, ActionKind.CHANGE_VALUE, False),
                ]
            )
            lcd.return_home()

            lcd.close()

    def test_create_lcd_uses_config(self) -> None:
        backend = MemoryBackend()
        config = LcdConfig(rs=7, e=8, d4=25, d5=24, d6=23, d7=18, delay=0.0, pulse=0.0)

        lcd = create_lcd(config, backend=backend, sleep=_no_sleep)
        lcd.initialize()

        assert [pin.number for pin in lcd.pins] == [7, 8, 25, 24, 23, 18]
        for number in (7, 8, 25, 24, 23, 18):
            assert backend.peek(number, Channel.DIRECTION) == "out"

        lcd.close()
        assert not any(backend.is_exported(number) for number in (7, 8, 25, 24, 23, 18))
