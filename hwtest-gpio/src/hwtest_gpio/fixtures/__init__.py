"""Reusable pytest fixtures for GPIO driver tests.

To use these fixtures, either:
1. Import them in your conftest.py:
   from hwtest_gpio.fixtures.conftest import gpio_emulator, fake_sysfs

2. Or use pytest_plugins in your conftest.py:
   pytest_plugins = ["hwtest_gpio.fixtures.conftest"]
"""

from hwtest_gpio.fixtures.conftest import fake_sysfs, gpio_base_dir, gpio_emulator

__all__ = ["fake_sysfs", "gpio_base_dir", "gpio_emulator"]
