"""In-memory GPIO backend.

Provides an in-process substitute for the sysfs GPIO tree implementing the
:class:`hwtest_gpio.backend.PinIO` protocol. Channel contents are kept in a
string map per pin, export/unexport toggle a flag instead of creating
directories, and the kernel rules that constrain the pin state machine are
enforced on writes:

- direction cannot become ``out`` while edge detection is active (EIO)
- edge detection cannot be enabled on an output line (EIO)
- the value of an input line cannot be written (EPERM)
- payloads outside a channel's vocabulary are rejected (EINVAL)

Every completed open/close/read/write is reported to registered observers,
which is how :class:`hwtest_gpio.emulator.Emulator` sees pin activity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from hwtest_gpio.backend import ChannelEvent, ChannelObserver, ChannelOp
from hwtest_gpio.errors import ChannelIOError, PinResourceError
from hwtest_gpio.types import Channel, Direction, Edge

logger = logging.getLogger(__name__)

_DIRECTIONS = frozenset(d.value for d in Direction)
_EDGES = frozenset(e.value for e in Edge)
_LEVELS = frozenset({"0", "1"})


def _defaults() -> dict[Channel, str]:
    return {
        Channel.DIRECTION: f"{Direction.IN.value}\n",
        Channel.EDGE: f"{Edge.NONE.value}\n",
        Channel.VALUE: "0\n",
    }


@dataclass
class _PinState:
    exported: bool = False
    data: dict[Channel, str] = field(default_factory=_defaults)

    def word(self, channel: Channel) -> str:
        return self.data[channel].strip()


class MemoryChannelHandle:
    """Handle to one channel of a :class:`MemoryBackend` pin.

    Args:
        backend: Owning backend.
        pin: GPIO number the handle was opened for.
        channel: Channel name.
    """

    def __init__(self, backend: MemoryBackend, pin: int, channel: Channel) -> None:
        self._backend = backend
        self._pin = pin
        self._channel = channel
        self._closed = False

    @property
    def pin(self) -> int:
        """GPIO number the handle was opened for."""
        return self._pin

    @property
    def channel(self) -> Channel:
        """Channel this handle refers to."""
        return self._channel

    @property
    def closed(self) -> bool:
        """Return True once the handle has been closed."""
        return self._closed

    def read(self) -> str:
        self._check_open()
        return self._backend._read(self._pin, self._channel)  # pylint: disable=protected-access

    def write(self, data: str) -> int:
        self._check_open()
        return self._backend._write(self._pin, self._channel, data)  # pylint: disable=protected-access

    def flush(self) -> None:
        self._check_open()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._backend._close(self._pin, self._channel)  # pylint: disable=protected-access

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelIOError(f"Handle for gpio{self._pin}/{self._channel.value} is closed")


class MemoryBackend:
    """In-process GPIO backend with observer notifications.

    Args:
        observers: Callbacks invoked with a :class:`ChannelEvent` after each
            successful channel operation.

    Example:
        >>> backend = MemoryBackend()
        >>> pin = GpioPin(4, backend)
        >>> pin.enable()
        >>> backend.peek(4, Channel.DIRECTION)
        'in'
    """

    def __init__(self, observers: Iterable[ChannelObserver] = ()) -> None:
        self._pins: dict[int, _PinState] = {}
        self._observers: list[ChannelObserver] = list(observers)

    # -- Observer registration ---------------------------------------------

    def add_observer(self, observer: ChannelObserver) -> None:
        """Register a callback for channel events."""
        self._observers.append(observer)

    def remove_observer(self, observer: ChannelObserver) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)

    # -- PinIO interface ----------------------------------------------------

    def open_channel(self, pin: int, channel: Channel) -> MemoryChannelHandle:
        if not channel.is_control and not self.is_exported(pin):
            raise PinResourceError(f"Can not open gpio{pin}/{channel.value}: pin is not exported")
        handle = MemoryChannelHandle(self, pin, channel)
        self._notify(ChannelOp.OPEN, pin, channel)
        return handle

    def is_exported(self, pin: int) -> bool:
        state = self._pins.get(pin)
        return state is not None and state.exported

    # -- Test helpers -------------------------------------------------------

    def set_input(self, pin: int, level: bool) -> None:
        """Drive the level seen on a line, as external hardware would.

        Observers are not notified; this is not an action of the pin owner.

        Args:
            pin: GPIO number.
            level: Line level to present.

        Raises:
            PinResourceError: If the pin is not exported.
        """
        self._exported_state(pin).data[Channel.VALUE] = "1\n" if level else "0\n"

    def peek(self, pin: int, channel: Channel) -> str | None:
        """Return the trimmed content of a channel without notifying observers.

        Args:
            pin: GPIO number.
            channel: Per-pin channel to inspect.

        Returns:
            Channel content, or None if the pin is not exported.
        """
        if not self.is_exported(pin):
            return None
        return self._pins[pin].word(channel)

    # -- Channel operations -------------------------------------------------

    def _exported_state(self, pin: int) -> _PinState:
        if not self.is_exported(pin):
            raise PinResourceError(f"gpio{pin} is not exported")
        return self._pins[pin]

    def _read(self, pin: int, channel: Channel) -> str:
        if channel.is_control:
            raise ChannelIOError(f"Channel '{channel.value}' is write-only")
        data = self._exported_state(pin).data[channel]
        self._notify(ChannelOp.READ, pin, channel, data)
        return data

    def _write(self, pin: int, channel: Channel, data: str) -> int:
        if channel.is_control:
            self._write_control(channel, data)
        else:
            self._write_attribute(self._exported_state(pin), pin, channel, data)
        self._notify(ChannelOp.WRITE, pin, channel, data)
        return len(data.encode("ascii"))

    def _write_control(self, channel: Channel, data: str) -> None:
        try:
            target = int(data.strip())
        except ValueError as exc:
            raise ChannelIOError(f"Invalid argument written to '{channel.value}': {data!r}") from exc

        exporting = channel is Channel.EXPORT
        if self.is_exported(target) == exporting:
            raise ChannelIOError(
                f"Can not {channel.value} gpio{target}: "
                f"already {'exported' if exporting else 'unexported'}"
            )
        if exporting:
            self._pins[target] = _PinState(exported=True)
            logger.debug("Exported gpio%d", target)
        else:
            self._pins[target].exported = False
            logger.debug("Unexported gpio%d", target)

    def _write_attribute(self, state: _PinState, pin: int, channel: Channel, data: str) -> None:
        word = data.strip()
        if channel is Channel.DIRECTION:
            if word not in _DIRECTIONS:
                raise ChannelIOError(f"Invalid direction for gpio{pin}: {word!r}")
            if word == Direction.OUT.value and state.word(Channel.EDGE) != Edge.NONE.value:
                raise ChannelIOError(f"Can not set gpio{pin} to output while edge detection is active")
        elif channel is Channel.EDGE:
            if word not in _EDGES:
                raise ChannelIOError(f"Invalid edge for gpio{pin}: {word!r}")
            if word != Edge.NONE.value and state.word(Channel.DIRECTION) == Direction.OUT.value:
                raise ChannelIOError(f"Can not enable edge detection on output gpio{pin}")
        elif channel is Channel.VALUE:
            if word not in _LEVELS:
                raise ChannelIOError(f"Invalid value for gpio{pin}: {word!r}")
            if state.word(Channel.DIRECTION) != Direction.OUT.value:
                raise ChannelIOError(f"Can not write value of input gpio{pin}")
        state.data[channel] = data

    def _close(self, pin: int, channel: Channel) -> None:
        self._notify(ChannelOp.CLOSE, pin, channel)

    def _notify(self, op: ChannelOp, pin: int, channel: Channel, payload: str | None = None) -> None:
        event = ChannelEvent(op=op, pin=pin, channel=channel, payload=payload)
        for observer in list(self._observers):
            observer(event)
