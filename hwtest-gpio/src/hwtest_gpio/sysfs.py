"""Kernel sysfs GPIO backend.

Implements :class:`hwtest_gpio.backend.PinIO` against the file protocol of the
legacy sysfs GPIO interface:

    <base>/export               write "<N>\\n"
    <base>/unexport             write "<N>\\n"
    <base>/gpio<N>/direction    "in" | "out"
    <base>/gpio<N>/edge         "none" | "rising" | "falling" | "both"
    <base>/gpio<N>/value        "0" | "1"

The base directory defaults to ``/sys/class/gpio`` and may point at a plain
directory tree instead (see :func:`populate_sysfs_tree`).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from hwtest_gpio.errors import ChannelIOError, PinResourceError
from hwtest_gpio.types import PIN_CHANNELS, Channel, Direction, Edge

logger = logging.getLogger(__name__)

DEFAULT_BASE_DIR = Path("/sys/class/gpio")

_KERNEL_SYSFS_ROOT = Path("/sys")

# Sysfs attributes are at most one page
_READ_SIZE = 4096


def _open_existing_write_only(path: str | os.PathLike[str], _flags: int) -> int:
    # Drops O_CREAT and O_TRUNC from the "wb" flags
    return os.open(path, os.O_WRONLY)


class SysfsChannelHandle:
    """An open sysfs channel file.

    The file is opened unbuffered in binary mode so that the byte count
    returned from :meth:`write` is the count the kernel accepted. Per-pin
    attributes are opened read-write. ``export`` and ``unexport`` are
    write-only in the kernel (mode 0200) and are opened write-only; the file
    must already exist and is never created or truncated on open.

    Args:
        path: Path of the channel file.
        truncate: Truncate the file after each write. Needed for plain files,
            which unlike sysfs attributes keep stale trailing bytes.
        write_only: Open the file for writing only.
    """

    def __init__(self, path: Path, truncate: bool = False, write_only: bool = False) -> None:
        self._path = path
        self._truncate = truncate
        try:
            if write_only:
                self._file = open(  # pylint: disable=consider-using-with
                    path, "wb", buffering=0, opener=_open_existing_write_only
                )
            else:
                self._file = open(path, "r+b", buffering=0)  # pylint: disable=consider-using-with
        except OSError as exc:
            raise PinResourceError(f"Can not open file '{path}': {exc}") from exc

    @property
    def path(self) -> Path:
        """Path of the channel file."""
        return self._path

    @property
    def mode(self) -> str:
        """Mode the file was opened with, ``"wb"`` or ``"rb+"``."""
        return self._file.mode

    def fileno(self) -> int:
        """Return the OS file descriptor, for use with select()."""
        return self._file.fileno()

    def read(self) -> str:
        try:
            self._file.seek(0)
            data = self._file.read(_READ_SIZE)
        except OSError as exc:
            raise ChannelIOError(f"Failed to read from '{self._path}': {exc}") from exc
        if data is None:
            raise ChannelIOError(f"No data available from '{self._path}'")
        try:
            return data.decode("ascii")
        except UnicodeDecodeError as exc:
            raise ChannelIOError(f"Invalid data in '{self._path}': {data!r}") from exc

    def write(self, data: str) -> int:
        try:
            self._file.seek(0)
            written = self._file.write(data.encode("ascii"))
            if self._truncate:
                self._file.truncate()
        except OSError as exc:
            raise ChannelIOError(f"Failed to write to '{self._path}': {exc}") from exc
        return written or 0

    def flush(self) -> None:
        try:
            self._file.flush()
        except OSError as exc:
            raise ChannelIOError(f"Failed to flush '{self._path}': {exc}") from exc

    def close(self) -> None:
        self._file.close()


def _is_kernel_sysfs(path: Path) -> bool:
    return path.resolve().is_relative_to(_KERNEL_SYSFS_ROOT)


class SysfsBackend:
    """Backend operating on the sysfs GPIO file tree.

    Args:
        base_dir: Base directory of the GPIO tree.

    Example:
        >>> pin = GpioPin(17, SysfsBackend())
        >>> pin.enable()
        >>> pin.set_direction(Direction.OUT)
        >>> pin.set_value(True)
        >>> pin.disable()
    """

    def __init__(self, base_dir: str | Path = DEFAULT_BASE_DIR) -> None:
        self._base_dir = Path(base_dir)
        self._truncate = not _is_kernel_sysfs(self._base_dir)

    @property
    def base_dir(self) -> Path:
        """Base directory of the GPIO tree."""
        return self._base_dir

    def pin_dir(self, pin: int) -> Path:
        """Return the directory the kernel creates for an exported pin."""
        return self._base_dir / f"gpio{pin}"

    def channel_path(self, pin: int, channel: Channel) -> Path:
        """Return the file backing a channel.

        Args:
            pin: GPIO number.
            channel: Channel name.

        Returns:
            Path of the channel file.
        """
        if channel.is_control:
            return self._base_dir / channel.value
        return self.pin_dir(pin) / channel.value

    def open_channel(self, pin: int, channel: Channel) -> SysfsChannelHandle:
        path = self.channel_path(pin, channel)
        logger.debug("Opening %s", path)
        return SysfsChannelHandle(path, truncate=self._truncate, write_only=channel.is_control)

    def is_exported(self, pin: int) -> bool:
        # Path.is_dir() stats on every call, there is no cache to clear
        return self.pin_dir(pin).is_dir()


def populate_sysfs_tree(base_dir: str | Path, pins: Iterable[int] = ()) -> Path:
    """Create a plain-file imitation of the sysfs GPIO tree.

    Creates empty ``export`` and ``unexport`` files, plus a ``gpio<N>``
    directory for each given pin with its channels seeded to the kernel's
    power-on defaults. Pins listed here appear already exported.

    Args:
        base_dir: Directory to populate; created if missing.
        pins: GPIO numbers to create as exported.

    Returns:
        The base directory.
    """
    base = Path(base_dir)
    base.mkdir(parents=True, exist_ok=True)
    for name in (Channel.EXPORT.value, Channel.UNEXPORT.value):
        control = base / name
        if not control.exists():
            control.touch()

    defaults = {
        Channel.DIRECTION: Direction.IN.value,
        Channel.EDGE: Edge.NONE.value,
        Channel.VALUE: "0",
    }
    for pin in pins:
        pin_dir = base / f"gpio{pin}"
        pin_dir.mkdir(exist_ok=True)
        for channel in PIN_CHANNELS:
            (pin_dir / channel.value).write_text(f"{defaults[channel]}\n", encoding="ascii")
    return base

