"""Pin-level types shared by the pin state machine and its backends.

The string values match the words the kernel sysfs GPIO interface reads and
writes, so ``Direction.OUT.value`` is exactly what goes into the direction
file (minus the line terminator).

Classes:
    Direction: Line direction (in/out).
    Edge: Edge detection configuration.
    Channel: Named sub-resource of a pin, backed by a file-like object.
"""

from __future__ import annotations

from enum import Enum


class Direction(str, Enum):
    """GPIO line direction."""

    IN = "in"
    OUT = "out"


class Edge(str, Enum):
    """GPIO edge detection setting.

    Edge detection controls which transitions of an input line the kernel
    reports as interrupts. Only the configuration is handled here.
    """

    NONE = "none"
    RISING = "rising"
    FALLING = "falling"
    BOTH = "both"


class Channel(str, Enum):
    """A named channel of the sysfs GPIO interface.

    ``EXPORT`` and ``UNEXPORT`` are shared by all pins and live directly under
    the base directory. The remaining channels exist per pin once it is
    exported.
    """

    EXPORT = "export"
    UNEXPORT = "unexport"
    DIRECTION = "direction"
    EDGE = "edge"
    VALUE = "value"

    @property
    def is_control(self) -> bool:
        """Return True for the shared export/unexport channels."""
        return self in (Channel.EXPORT, Channel.UNEXPORT)


PIN_CHANNELS: tuple[Channel, ...] = (Channel.DIRECTION, Channel.EDGE, Channel.VALUE)
"""Channels opened for every enabled pin, in opening order."""
