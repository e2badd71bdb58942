"""Integration tests against the kernel sysfs GPIO interface.

These tests verify:
- Export and unexport of a real line
- Direction and edge changes honoring the kernel's ordering rules
- Driving and reading back the line level

Requirements:
- Linux kernel with the legacy sysfs GPIO interface enabled
- Write access to the GPIO tree (root or the gpio group)
- An unused GPIO line, not wired to anything that must not be driven

Environment variables:
    HWTEST_GPIO_TEST_PIN: GPIO number to exercise (tests skip if unset)
    HWTEST_GPIO_BASE: sysfs GPIO base directory (default: /sys/class/gpio)

Run with:
    HWTEST_GPIO_TEST_PIN=21 pytest hwtest-gpio/tests/integration/ -v
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest

from hwtest_gpio.pin import GpioPin
from hwtest_gpio.sysfs import SysfsBackend
from hwtest_gpio.types import Direction, Edge

# Mark all tests in this module as integration tests
pytestmark = pytest.mark.integration


@pytest.fixture
def hardware_pin(gpio_base_dir: Path) -> Generator[GpioPin, None, None]:
    """Provide the configured line, enabled, and release it afterwards."""
    number = int(os.environ["HWTEST_GPIO_TEST_PIN"])
    with GpioPin(number, SysfsBackend(gpio_base_dir)) as pin:
        yield pin


class TestLifecycle:
    def test_enable_creates_pin_directory(self, hardware_pin: GpioPin) -> None:
        backend = hardware_pin.backend
        assert isinstance(backend, SysfsBackend)
        assert backend.pin_dir(hardware_pin.number).is_dir()

    def test_disable_removes_pin_directory(self, hardware_pin: GpioPin) -> None:
        hardware_pin.disable()
        assert not hardware_pin.backend.is_exported(hardware_pin.number)


class TestDirection:
    def test_output_clears_edge(self, hardware_pin: GpioPin) -> None:
        hardware_pin.set_direction(Direction.IN)
        hardware_pin.set_edge(Edge.BOTH)

        hardware_pin.set_direction(Direction.OUT)

        assert hardware_pin.get_edge() is Edge.NONE
        assert hardware_pin.read_direction() is Direction.OUT


class TestValue:
    def test_drive_and_read_back(self, hardware_pin: GpioPin) -> None:
        hardware_pin.set_direction(Direction.OUT)

        for value in (True, False, True):
            hardware_pin.set_value(value)
            assert hardware_pin.get_value() is value
