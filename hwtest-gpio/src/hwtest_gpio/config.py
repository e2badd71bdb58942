"""YAML configuration loading for GPIO setups.

Example YAML configuration:
    base_dir: "/sys/class/gpio"

    pins:
      status_led: 17
      door_sensor: 27

    lcd:
      rs: 7
      e: 8
      d4: 25
      d5: 24
      d6: 23
      d7: 18
      delay: 0.00005
      pulse: 0.00005

The base directory can be overridden with the ``HWTEST_GPIO_BASE``
environment variable, which takes precedence over the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from hwtest_gpio.sysfs import DEFAULT_BASE_DIR

BASE_DIR_ENV = "HWTEST_GPIO_BASE"
"""Environment variable overriding the sysfs GPIO base directory."""


def _check_pin_number(name: str, number: Any) -> int:
    if isinstance(number, bool) or not isinstance(number, int) or number < 0:
        raise ValueError(f"pin '{name}' must be a non-negative integer, got {number!r}")
    return number


@dataclass(frozen=True)
class LcdConfig:
    """Pin assignment and timing of an HD44780 display.

    Attributes:
        rs: Register select GPIO number.
        e: Enable strobe GPIO number.
        d4: Data bit 4 GPIO number.
        d5: Data bit 5 GPIO number.
        d6: Data bit 6 GPIO number.
        d7: Data bit 7 GPIO number.
        delay: Settle time around each strobe, in seconds.
        pulse: Enable pulse width, in seconds.
    """

    rs: int
    e: int
    d4: int
    d5: int
    d6: int
    d7: int
    delay: float = 50e-6
    pulse: float = 50e-6

    def __post_init__(self) -> None:
        """Validate configuration."""
        numbers = [
            _check_pin_number(name, getattr(self, name))
            for name in ("rs", "e", "d4", "d5", "d6", "d7")
        ]
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"LCD pins must be distinct, got {numbers}")
        if self.delay < 0:
            raise ValueError("delay must not be negative")
        if self.pulse < 0:
            raise ValueError("pulse must not be negative")


@dataclass(frozen=True)
class GpioConfig:
    """GPIO setup of a board.

    Attributes:
        base_dir: Base directory of the sysfs GPIO tree.
        pins: Logical pin names mapped to GPIO numbers.
        lcd: Optional character display wiring.
    """

    base_dir: Path = DEFAULT_BASE_DIR
    pins: dict[str, int] = field(default_factory=dict)
    lcd: LcdConfig | None = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name, number in self.pins.items():
            _check_pin_number(name, number)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GpioConfig:
        """Create config from a parsed YAML mapping.

        Args:
            data: Mapping with optional ``base_dir``, ``pins`` and ``lcd`` keys.

        Returns:
            GpioConfig instance.

        Raises:
            ValueError: If a section has the wrong shape or invalid values.
        """
        pins = data.get("pins") or {}
        if not isinstance(pins, Mapping):
            raise ValueError("'pins' must be a mapping of name to GPIO number")

        lcd_data = data.get("lcd")
        lcd = None
        if lcd_data is not None:
            if not isinstance(lcd_data, Mapping):
                raise ValueError("'lcd' must be a mapping")
            try:
                lcd = LcdConfig(**lcd_data)
            except TypeError as exc:
                raise ValueError(f"invalid 'lcd' section: {exc}") from exc

        return cls(
            base_dir=Path(data.get("base_dir") or DEFAULT_BASE_DIR),
            pins={str(name): number for name, number in pins.items()},
            lcd=lcd,
        )

    def resolve_pin(self, pin: str | int) -> int:
        """Resolve a pin alias or number to a GPIO number.

        Args:
            pin: Alias from ``pins``, a GPIO number, or a numeric string.

        Returns:
            GPIO number.

        Raises:
            ValueError: If the alias is unknown.
        """
        if isinstance(pin, int):
            return _check_pin_number(str(pin), pin)
        if pin in self.pins:
            return self.pins[pin]
        if pin.isdigit():
            return int(pin)
        raise ValueError(f"Unknown pin '{pin}'")


def load_config(path: str | Path) -> GpioConfig:
    """Load a GPIO configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is empty or invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration file must contain a mapping: {path}")

    return GpioConfig.from_dict(data)


def resolve_base_dir(config: GpioConfig | None = None, override: str | Path | None = None) -> Path:
    """Pick the effective sysfs base directory.

    Precedence is the explicit override, then ``HWTEST_GPIO_BASE``, then
    the config file, then the kernel default.

    Args:
        config: Loaded configuration, if any.
        override: Explicit directory, e.g. from the command line.

    Returns:
        The base directory to use.
    """
    if override is not None:
        return Path(override)
    env = os.environ.get(BASE_DIR_ENV)
    if env:
        return Path(env)
    if config is not None:
        return config.base_dir
    return DEFAULT_BASE_DIR
