"""Test configuration for hwtest-gpio.

This conftest.py imports fixtures from the package.
"""

# Import fixtures from the package to make them available to all tests
from hwtest_gpio.fixtures.conftest import (  # noqa: F401
    fake_sysfs,
    gpio_base_dir,
    gpio_emulator,
)
