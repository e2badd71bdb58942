"""Reusable pytest fixtures for GPIO driver tests.

These fixtures can be imported into your test conftest.py or used via
pytest_plugins = ["hwtest_gpio.fixtures.conftest"]

Environment variables:
    HWTEST_GPIO_BASE: sysfs GPIO base directory (default: /sys/class/gpio)
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from hwtest_gpio.config import resolve_base_dir
from hwtest_gpio.emulator import Emulator
from hwtest_gpio.sysfs import populate_sysfs_tree


@pytest.fixture
def gpio_base_dir() -> Path:
    """Get the sysfs GPIO base directory from environment.

    Returns:
        Base directory (default: /sys/class/gpio).

    Environment:
        HWTEST_GPIO_BASE: Override the default directory.
    """
    return resolve_base_dir()


@pytest.fixture
def gpio_emulator() -> Generator[Emulator, None, None]:
    """Provide an emulator that verifies leftover expectations at teardown.

    Expectations still queued when the test finishes make the teardown fail,
    unless the test switched the excess policy to IGNORE.

    Yields:
        A fresh emulator on its own memory backend.

    Example:
        def test_led(gpio_emulator):
            gpio_emulator.expect([(17, ActionKind.ENABLE, None)])
            gpio_emulator.pin(17).enable()
    """
    emulator = Emulator()
    yield emulator
    emulator.close()


@pytest.fixture
def fake_sysfs(tmp_path: Path) -> Path:
    """Provide an empty plain-file GPIO tree with export/unexport files.

    Add exported pins with :func:`hwtest_gpio.sysfs.populate_sysfs_tree`.

    Returns:
        The base directory of the tree.
    """
    return populate_sysfs_tree(tmp_path / "gpio")
