"""Root conftest.py for hwtest-gpio.

This provides shared pytest configuration for the test suite.
It also automatically marks tests that run against test doubles instead of
a real GPIO tree, and skips hardware tests unless a test pin is configured.
"""

from __future__ import annotations

import ast
import inspect
import os
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


# Add package src directories to path for imports
PROJECT_ROOT = Path(__file__).parent
for pkg_dir in PROJECT_ROOT.glob("hwtest-*/src"):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))

TEST_PIN_ENV = "HWTEST_GPIO_TEST_PIN"


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "uses_mock: Test uses a test double (auto-detected or manually marked)",
    )
    config.addinivalue_line(
        "markers",
        f"integration: Test requiring a real GPIO line (set {TEST_PIN_ENV})",
    )
    config.addinivalue_line(
        "markers",
        "slow: Slow-running test",
    )


class DoubleDetector(ast.NodeVisitor):
    """AST visitor to detect use of test doubles in test functions."""

    # Names that indicate the test does not touch a real GPIO tree
    DOUBLE_PATTERNS = frozenset({
        # unittest.mock
        "MagicMock",
        "Mock",
        "patch",
        "create_autospec",
        # In-process GPIO doubles
        "MemoryBackend",
        "Emulator",
        "populate_sysfs_tree",
    })

    # Fixtures providing doubles
    DOUBLE_FIXTURES = frozenset({"gpio_emulator", "fake_sysfs", "monkeypatch"})

    def __init__(self) -> None:
        """Initialize the detector."""
        self.uses_double = False

    def visit_Call(self, node: ast.Call) -> None:
        """Check function calls for test doubles.

        Args:
            node: Call AST node.
        """
        if isinstance(node.func, ast.Name) and node.func.id in self.DOUBLE_PATTERNS:
            self.uses_double = True
        elif isinstance(node.func, ast.Attribute) and node.func.attr in self.DOUBLE_PATTERNS:
            self.uses_double = True
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        """Check function parameters for double-providing fixtures.

        Args:
            node: FunctionDef AST node.
        """
        for arg in node.args.args:
            if arg.arg in self.DOUBLE_FIXTURES or "mock" in arg.arg.lower():
                self.uses_double = True
        self.generic_visit(node)


def _uses_double(item: Item) -> bool:
    """Check if a test function, or a module-level helper it names, uses a double.

    Args:
        item: pytest test item.

    Returns:
        True if the test runs against a test double.
    """
    obj = getattr(item, "obj", None)
    if obj is None:
        return False

    try:
        tree = ast.parse(textwrap.dedent(inspect.getsource(obj)))
    except (OSError, TypeError, SyntaxError):
        return False

    detector = DoubleDetector()
    detector.visit(tree)
    if detector.uses_double:
        return True

    # Helpers such as _make_pin() build the double on the test's behalf
    module = getattr(item, "module", None)
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
            helper = getattr(module, node.func.id, None)
            if node.func.id.startswith("_make") and callable(helper):
                return True
    return False


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Mark tests using doubles and skip hardware tests without a test pin.

    Args:
        config: pytest configuration object.
        items: List of collected test items.
    """
    skip_hardware = pytest.mark.skip(reason=f"{TEST_PIN_ENV} not set")
    has_test_pin = bool(os.environ.get(TEST_PIN_ENV))

    for item in items:
        if item.get_closest_marker("integration"):
            if not has_test_pin:
                item.add_marker(skip_hardware)
            continue

        if not item.get_closest_marker("uses_mock") and _uses_double(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add GPIO test setup info to pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    lines = ["hwtest-gpio test suite"]

    test_pin = os.environ.get(TEST_PIN_ENV)
    lines.append(f"Hardware test pin: {test_pin}" if test_pin else "Hardware tests: skipped")

    # Check if coverage is enabled
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled")

    return lines
