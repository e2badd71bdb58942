"""Channel I/O protocol definitions.

This module defines the interfaces :class:`hwtest_gpio.pin.GpioPin` uses to
reach the storage behind a pin. Backends handle the byte-level effects; the
pin handles state transition legality.

Implementations include:
- :class:`hwtest_gpio.sysfs.SysfsBackend`: file I/O against the kernel sysfs tree
- :class:`hwtest_gpio.memory.MemoryBackend`: in-process map with observer hooks
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from hwtest_gpio.types import Channel


class ChannelHandle(Protocol):
    """Protocol for an open channel of one pin.

    Handles are exclusively owned by the pin that opened them.
    """

    def read(self) -> str:
        """Read the whole channel content.

        Implementations re-position to the start of the channel before
        reading, since sysfs attributes do not reset their offset.

        Returns:
            The raw channel content, including any line terminator.

        Raises:
            ChannelIOError: If the read fails.
        """
        ...

    def write(self, data: str) -> int:
        """Write data to the channel.

        Args:
            data: The payload, including the line terminator.

        Returns:
            Number of bytes actually written.

        Raises:
            ChannelIOError: If the write is rejected.
        """
        ...

    def flush(self) -> None:
        """Force any buffered data down to the backend."""
        ...

    def close(self) -> None:
        """Close the handle and release resources."""
        ...


class PinIO(Protocol):
    """Protocol for a pin storage backend.

    Example:
        >>> backend: PinIO = MemoryBackend()
        >>> handle = backend.open_channel(17, Channel.EXPORT)
        >>> handle.write("17\\n")
        3
        >>> backend.is_exported(17)
        True
    """

    def open_channel(self, pin: int, channel: Channel) -> ChannelHandle:
        """Open a channel of a pin for reading and writing.

        Args:
            pin: GPIO number.
            channel: Channel to open.

        Returns:
            An open handle.

        Raises:
            PinResourceError: If the channel cannot be opened.
        """
        ...

    def is_exported(self, pin: int) -> bool:
        """Check whether the OS-level resource of a pin is allocated.

        Args:
            pin: GPIO number.

        Returns:
            True if the pin is currently exported.
        """
        ...


class ChannelOp(Enum):
    """Kind of channel operation reported to backend observers."""

    OPEN = "open"
    CLOSE = "close"
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class ChannelEvent:
    """A completed channel operation.

    Attributes:
        op: The operation performed.
        pin: GPIO number the channel was opened for.
        channel: The channel operated on.
        payload: Data written or read; None for open and close.
    """

    op: ChannelOp
    pin: int
    channel: Channel
    payload: str | None = None


ChannelObserver = Callable[[ChannelEvent], None]
"""Callback type invoked by :class:`MemoryBackend` after each channel operation."""
