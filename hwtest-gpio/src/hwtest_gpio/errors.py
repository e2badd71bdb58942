"""Exception types for hwtest-gpio.

All hwtest-gpio exceptions inherit from GpioError. Where a failure maps onto a
builtin exception category, the class also derives from that builtin, so
callers may catch either.

Exception hierarchy:
    GpioError (base)
    +-- PinArgumentError: Direction/edge/value outside the allowed set (ValueError)
    +-- PinStateError: Operation not allowed in the pin's current state
    +-- PinResourceError: Export/unexport did not take effect, channel not openable
    +-- ChannelIOError: Short write or failed read on a channel (OSError)
    +-- ExpectationError: Emulator observed an unexpected action (AssertionError)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hwtest_gpio.emulator import LogEntry


class GpioError(Exception):
    """Base exception for all hwtest-gpio errors."""


class PinArgumentError(GpioError, ValueError):
    """Raised when a direction, edge or value argument is invalid.

    Always raised before any channel I/O is performed.
    """


class PinStateError(GpioError):
    """Raised when an operation is not allowed in the pin's current state.

    Examples are setting the value of an input pin, or reading the edge of a
    pin that is not enabled.
    """


class PinResourceError(GpioError):
    """Raised when the OS-level pin resource cannot be acquired or released.

    This covers an export or unexport that did not take effect, and channel
    files that cannot be opened.
    """


class ChannelIOError(GpioError, OSError):
    """Raised when reading from or writing to a channel fails.

    Partial writes are reported with this error and are never retried.
    """


class ExpectationError(GpioError, AssertionError):
    """Raised by the emulator when observed actions do not match expectations.

    Attributes:
        expected: The expected entry, if the failure was a mismatch.
        actual: The observed entry, if an action triggered the failure.
        remaining: Number of unconsumed expectations, for excess failures.
    """

    def __init__(
        self,
        message: str,
        *,
        expected: LogEntry | None = None,
        actual: LogEntry | None = None,
        remaining: int = 0,
    ) -> None:
        """Initialize the expectation error.

        Args:
            message: Human-readable failure description.
            expected: The expected entry, if any.
            actual: The observed entry, if any.
            remaining: Number of unconsumed expectations.
        """
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.remaining = remaining
