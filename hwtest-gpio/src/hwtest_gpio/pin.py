"""GPIO pin state machine.

:class:`GpioPin` owns the channel handles of one GPIO line and enforces the
ordering and exclusion rules of the kernel sysfs interface:

- handles are open exactly while the pin is enabled
- an output line never has edge detection configured; switching to output
  clears the edge first
- the value can only be written on an enabled output line
- edge detection can only be configured on an enabled input line

The byte-level effects are delegated to a :class:`hwtest_gpio.backend.PinIO`
backend, so the same pin logic drives real hardware through
:class:`hwtest_gpio.sysfs.SysfsBackend` and tests through
:class:`hwtest_gpio.memory.MemoryBackend`.

Example:
    >>> with GpioPin(17) as pin:
    ...     pin.set_direction(Direction.OUT)
    ...     pin.set_value(True)
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

from hwtest_gpio.backend import ChannelHandle, PinIO
from hwtest_gpio.errors import (
    ChannelIOError,
    GpioError,
    PinArgumentError,
    PinResourceError,
    PinStateError,
)
from hwtest_gpio.sysfs import SysfsBackend
from hwtest_gpio.types import PIN_CHANNELS, Channel, Direction, Edge

logger = logging.getLogger(__name__)


def _coerce_direction(direction: Any) -> Direction:
    try:
        return Direction(direction)
    except ValueError as exc:
        raise PinArgumentError(
            f"GPIO pin direction can only be 'in' or 'out', got {direction!r}"
        ) from exc


def _coerce_edge(edge: Any) -> Edge:
    try:
        return Edge(edge)
    except ValueError as exc:
        raise PinArgumentError(
            f"GPIO pin edge must be one of none|rising|falling|both, got {edge!r}"
        ) from exc


class GpioPin:
    """A single GPIO line.

    The pin starts out disabled. :meth:`enable` exports the line and opens
    its direction, edge and value channels; :meth:`disable` closes them and
    unexports the line. Disabling a pin that was never enabled does nothing. Use the pin as a context manager, or call
    :meth:`close`, to guarantee the export is released.

    Args:
        number: GPIO number (the BCM number on a Raspberry Pi).
        backend: Channel backend. Defaults to the kernel sysfs tree.

    Raises:
        PinArgumentError: If number is not a non-negative integer.
    """

    def __init__(self, number: int, backend: PinIO | None = None) -> None:
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise PinArgumentError(f"GPIO number must be a non-negative integer, got {number!r}")
        self._number = number
        self._backend: PinIO = backend if backend is not None else SysfsBackend()
        self._direction: Direction | None = None
        self._handles: dict[Channel, ChannelHandle] = {}

    def __repr__(self) -> str:
        state = "enabled" if self.is_enabled else "disabled"
        return f"GpioPin({self._number}, {state})"

    def __enter__(self) -> GpioPin:
        return self.enable()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()

    @property
    def number(self) -> int:
        """GPIO number of this pin."""
        return self._number

    @property
    def backend(self) -> PinIO:
        """Backend the pin performs its channel I/O through."""
        return self._backend

    @property
    def is_enabled(self) -> bool:
        """Return True while the pin's channel handles are open."""
        return bool(self._handles)

    @property
    def direction(self) -> Direction | None:
        """Cached direction, or None if not known yet."""
        return self._direction

    @property
    def value_handle(self) -> ChannelHandle:
        """The open value channel handle.

        With edge detection configured, this is the handle to select() on
        for change notifications.

        Raises:
            PinStateError: If the pin is not enabled.
        """
        return self._handle(Channel.VALUE)

    # -- Lifecycle ----------------------------------------------------------

    def enable(self) -> GpioPin:
        """Export the pin and open its channels.

        Does nothing if the pin is already enabled. An export left behind by
        another process is reused. If setup fails after this call exported
        the pin, the export is withdrawn again.

        Returns:
            This pin, for chaining.

        Raises:
            PinResourceError: If the export does not take effect or a channel
                cannot be opened.
            ChannelIOError: If writing the export request or reading the
                direction fails.
        """
        if self._handles:
            return self

        exported_here = False
        if not self._backend.is_exported(self._number):
            self._request(Channel.EXPORT)
            if not self._backend.is_exported(self._number):
                raise PinResourceError(f"Failed to enable GPIO pin {self._number}")
            exported_here = True

        try:
            for channel in PIN_CHANNELS:
                self._handles[channel] = self._backend.open_channel(self._number, channel)
            self._direction = self.read_direction()
        except GpioError:
            self._close_handles()
            self._direction = None
            if exported_here:
                self._withdraw_export()
            raise

        logger.debug("Enabled GPIO pin %d (direction=%s)", self._number, self._direction.value)
        return self

    def disable(self) -> GpioPin:
        """Close the pin's channels and unexport it.

        Does nothing if this pin is not enabled; an export held by another
        pin object or process is left alone. Handles are always closed, even
        if the unexport fails.

        Returns:
            This pin, for chaining.

        Raises:
            PinResourceError: If the unexport does not take effect.
            ChannelIOError: If writing the unexport request fails.
        """
        self._direction = None
        if not self._handles:
            return self
        self._close_handles()

        if self._backend.is_exported(self._number):
            self._request(Channel.UNEXPORT)
            if self._backend.is_exported(self._number):
                raise PinResourceError(f"Failed to disable GPIO pin {self._number}")
            logger.debug("Disabled GPIO pin %d", self._number)
        return self

    def close(self) -> None:
        """Release the pin; same as :meth:`disable`."""
        self.disable()

    def release(self) -> None:
        """Close the pin's channels but leave it exported.

        The pin can be picked up again later, by this or another process,
        with :meth:`enable`.
        """
        self._close_handles()
        self._direction = None

    # -- Direction ----------------------------------------------------------

    def get_direction(self) -> Direction:
        """Return the direction, reading it from the backend if not cached.

        Raises:
            PinStateError: If the direction is unknown and the pin is not enabled.
        """
        if self._direction is None:
            self._direction = self.read_direction()
        return self._direction

    def read_direction(self) -> Direction:
        """Read the direction from the backend, bypassing the cache.

        Returns:
            The direction the backend reports.

        Raises:
            PinStateError: If the pin is not enabled.
            ChannelIOError: If the channel content is not a direction.
        """
        word = self._read(Channel.DIRECTION)
        try:
            return Direction(word)
        except ValueError as exc:
            raise ChannelIOError(f"Unexpected direction {word!r} on GPIO pin {self._number}") from exc

    def set_direction(self, direction: Direction | str) -> GpioPin:
        """Change the direction of the pin.

        Switching to output clears edge detection first; if that fails the
        direction is left unchanged.

        Args:
            direction: :class:`Direction` member, or ``"in"``/``"out"``.

        Returns:
            This pin, for chaining.

        Raises:
            PinArgumentError: If direction is not in/out.
            PinStateError: If the pin is not enabled.
        """
        new_direction = _coerce_direction(direction)
        self._require_enabled()

        if new_direction is self._direction:
            return self

        if new_direction is Direction.OUT and self.get_edge() is not Edge.NONE:
            self._write(Channel.EDGE, Edge.NONE)

        self._write(Channel.DIRECTION, new_direction)
        self._direction = new_direction
        logger.debug("GPIO pin %d direction -> %s", self._number, new_direction.value)
        return self

    # -- Edge ---------------------------------------------------------------

    def get_edge(self) -> Edge:
        """Read the edge detection setting.

        Raises:
            PinStateError: If the pin is not enabled.
            ChannelIOError: If the channel content is not an edge setting.
        """
        word = self._read(Channel.EDGE)
        try:
            return Edge(word)
        except ValueError as exc:
            raise ChannelIOError(f"Unexpected edge {word!r} on GPIO pin {self._number}") from exc

    def set_edge(self, edge: Edge | str) -> GpioPin:
        """Configure edge detection. Only allowed while the pin is an input.

        Args:
            edge: :class:`Edge` member or its string value.

        Returns:
            This pin, for chaining.

        Raises:
            PinArgumentError: If edge is not a valid setting.
            PinStateError: If the pin is not enabled or not an input.
        """
        new_edge = _coerce_edge(edge)
        self._require_enabled()
        if self._direction is not Direction.IN:
            raise PinStateError(f"Can only set edge of GPIO pin {self._number} in input mode")

        self._write(Channel.EDGE, new_edge)
        logger.debug("GPIO pin %d edge -> %s", self._number, new_edge.value)
        return self

    # -- Value --------------------------------------------------------------

    def get_value(self) -> bool:
        """Read the line level.

        Raises:
            PinStateError: If the pin is not enabled.
        """
        return self._read(Channel.VALUE) != "0"

    def set_value(self, value: bool) -> GpioPin:
        """Drive the line level of an output pin.

        Args:
            value: True for high, False for low.

        Returns:
            This pin, for chaining.

        Raises:
            PinArgumentError: If value is not a bool.
            PinStateError: If the pin is not an enabled output.
        """
        if not isinstance(value, bool):
            raise PinArgumentError(f"GPIO pin value must be a bool, got {value!r}")
        self._require_enabled()
        if self._direction is not Direction.OUT:
            raise PinStateError(f"Can not set value of GPIO pin {self._number} in input mode")

        self._write(Channel.VALUE, "1" if value else "0")
        return self

    # -- Channel I/O --------------------------------------------------------

    def _require_enabled(self) -> None:
        if not self._handles:
            raise PinStateError(f"GPIO pin {self._number} is not enabled")

    def _handle(self, channel: Channel) -> ChannelHandle:
        self._require_enabled()
        return self._handles[channel]

    def _read(self, channel: Channel) -> str:
        return self._handle(channel).read().strip()

    def _write(self, channel: Channel, word: str) -> None:
        # str() of a str-mixin enum is its qualified name, not its value
        text = word.value if isinstance(word, (Direction, Edge)) else word
        self._write_handle(self._handle(channel), channel, f"{text}\n")

    def _write_handle(self, handle: ChannelHandle, channel: Channel, data: str) -> None:
        written = handle.write(data)
        if written != len(data):
            raise ChannelIOError(
                f"Could not write {len(data)} bytes to {channel.value} of GPIO pin "
                f"{self._number}, only {written} bytes written"
            )
        handle.flush()

    def _request(self, channel: Channel) -> None:
        handle = self._backend.open_channel(self._number, channel)
        try:
            self._write_handle(handle, channel, f"{self._number}\n")
        finally:
            handle.close()

    def _withdraw_export(self) -> None:
        # Called while another error propagates; a failure here is only logged.
        try:
            self._request(Channel.UNEXPORT)
        except GpioError as exc:
            logger.warning("Could not unexport GPIO pin %d after failed enable: %s", self._number, exc)

    def _close_handles(self) -> None:
        handles, self._handles = self._handles, {}
        for handle in handles.values():
            handle.close()
