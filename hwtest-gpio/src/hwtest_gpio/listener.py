"""Export/unexport request listener.

Binds unix datagram sockets named ``export`` and ``unexport`` in a base
directory and reports every request that arrives on them. It stands in for
the kernel's control files when a tool under test only needs to announce
which pins it enables and disables.

Example:
    >>> with ExportListener("/tmp/gpio", on_event=print) as listener:
    ...     listener.serve_forever()
"""

from __future__ import annotations

import logging
import selectors
import socket
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Callable

from hwtest_gpio.types import Channel

logger = logging.getLogger(__name__)

POLL_TIMEOUT = 30.0
"""Seconds each poll waits for a request before looping."""

_MAX_DATAGRAM = 1024


@dataclass(frozen=True)
class ListenerEvent:
    """A request received on a control socket.

    Attributes:
        channel: ``Channel.EXPORT`` or ``Channel.UNEXPORT``.
        payload: Received text with surrounding whitespace removed.
    """

    channel: Channel
    payload: str

    @property
    def pin(self) -> int | None:
        """GPIO number requested, or None if the payload is not numeric."""
        return int(self.payload) if self.payload.isdigit() else None

    def __str__(self) -> str:
        verb = "Exporting" if self.channel is Channel.EXPORT else "Unexporting"
        return f"{verb} '{self.payload}'"


class ExportListener:
    """Listens for export/unexport requests on two datagram sockets.

    Args:
        base_dir: Directory to create the sockets in; created if missing.
        on_event: Callback invoked for each received request.
        poll_timeout: Seconds each poll waits in :meth:`serve_forever`.
    """

    def __init__(
        self,
        base_dir: str | Path,
        on_event: Callable[[ListenerEvent], None] | None = None,
        poll_timeout: float = POLL_TIMEOUT,
    ) -> None:
        if poll_timeout <= 0:
            raise ValueError("poll_timeout must be positive")
        self._base_dir = Path(base_dir)
        self._on_event = on_event
        self._poll_timeout = poll_timeout
        self._selector: selectors.BaseSelector | None = None
        self._sockets: dict[Channel, socket.socket] = {}
        self._running = False

    def __enter__(self) -> ExportListener:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        """Return True while the sockets are bound."""
        return self._selector is not None

    def socket_path(self, channel: Channel) -> Path:
        """Return the path a control socket is bound to."""
        return self._base_dir / channel.value

    def open(self) -> None:
        """Bind both control sockets, replacing stale socket files.

        Raises:
            OSError: If a socket cannot be bound.
        """
        if self._selector is not None:
            return

        self._base_dir.mkdir(parents=True, exist_ok=True)
        selector = selectors.DefaultSelector()
        try:
            for channel in (Channel.EXPORT, Channel.UNEXPORT):
                path = self.socket_path(channel)
                path.unlink(missing_ok=True)
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
                self._sockets[channel] = sock
                sock.bind(str(path))
                selector.register(sock, selectors.EVENT_READ, channel)
        except OSError:
            selector.close()
            self._close_sockets()
            raise

        self._selector = selector
        logger.info("Listening for export/unexport requests in %s", self._base_dir)

    def close(self) -> None:
        """Close the sockets and remove their files."""
        self._running = False
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        self._close_sockets()

    def poll_once(self, timeout: float | None = None) -> list[ListenerEvent]:
        """Wait for requests and dispatch them.

        Args:
            timeout: Seconds to wait; defaults to the poll timeout.

        Returns:
            Events received during this poll, possibly empty.

        Raises:
            RuntimeError: If the listener is not open.
        """
        if self._selector is None:
            raise RuntimeError("Listener not opened")

        events: list[ListenerEvent] = []
        wait = self._poll_timeout if timeout is None else timeout
        for key, _ in self._selector.select(wait):
            sock: socket.socket = key.fileobj  # type: ignore[assignment]
            data = sock.recv(_MAX_DATAGRAM)
            event = ListenerEvent(key.data, data.decode("ascii", errors="replace").strip())
            if event.pin is None:
                logger.warning("Invalid GPIO pin %r on %s", event.payload, key.data.value)
            else:
                logger.info("%s", event)
            events.append(event)
            if self._on_event is not None:
                self._on_event(event)
        return events

    def serve_forever(self) -> None:
        """Poll until :meth:`stop` is called or the listener is closed."""
        self._running = True
        while self._running and self._selector is not None:
            self.poll_once()

    def stop(self) -> None:
        """Make :meth:`serve_forever` return after the current poll."""
        self._running = False

    def _close_sockets(self) -> None:
        sockets, self._sockets = self._sockets, {}
        for channel, sock in sockets.items():
            sock.close()
            self.socket_path(channel).unlink(missing_ok=True)
