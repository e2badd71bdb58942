"""Pin activity emulator for hardware-free driver tests.

The :class:`Emulator` watches every write performed through a
:class:`hwtest_gpio.memory.MemoryBackend`, translates it into a pin action,
keeps a running log of those actions and optionally checks them against a
queue of expected actions.

Assertion strictness has two independent axes:

- :class:`MissingPolicy`: what happens when an action occurs but no
  expectation is left in the queue.
- :class:`ExcessPolicy`: what happens when the emulator is closed with
  expectations still queued.

Example:
    >>> with Emulator() as emu:
    ...     emu.set_assert_mask(ActionKind.CHANGE_VALUE)
    ...     emu.expect([(1, ActionKind.CHANGE_VALUE, True)])
    ...     pin = emu.pin(1).enable().set_direction("out")
    ...     pin.set_value(True)
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from types import TracebackType
from typing import Iterable, Union

from hwtest_gpio.backend import ChannelEvent, ChannelOp
from hwtest_gpio.errors import ExpectationError
from hwtest_gpio.memory import MemoryBackend
from hwtest_gpio.pin import GpioPin
from hwtest_gpio.types import Channel

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """Kind of pin action recognized by the emulator."""

    ENABLE = "enable"
    DISABLE = "disable"
    CHANGE_DIRECTION = "change_direction"
    CHANGE_EDGE = "change_edge"
    CHANGE_VALUE = "change_value"

    @property
    def label(self) -> str:
        """Human-readable action name used in log output and errors."""
        return _ACTION_LABELS[self]


_ACTION_LABELS: dict[ActionKind, str] = {
    ActionKind.ENABLE: "Enable",
    ActionKind.DISABLE: "Disable",
    ActionKind.CHANGE_DIRECTION: "ChangeDirection",
    ActionKind.CHANGE_EDGE: "ChangeEdge",
    ActionKind.CHANGE_VALUE: "ChangeValue",
}

_CHANNEL_ACTIONS: dict[Channel, ActionKind] = {
    Channel.EXPORT: ActionKind.ENABLE,
    Channel.UNEXPORT: ActionKind.DISABLE,
    Channel.DIRECTION: ActionKind.CHANGE_DIRECTION,
    Channel.EDGE: ActionKind.CHANGE_EDGE,
    Channel.VALUE: ActionKind.CHANGE_VALUE,
}

ALL_ACTIONS: frozenset[ActionKind] = frozenset(ActionKind)
"""Mask selecting every action kind."""


class MissingPolicy(Enum):
    """Reaction to an asserted action when the expectation queue is empty."""

    FAIL = "fail"
    IGNORE = "ignore"


class ExcessPolicy(Enum):
    """Reaction to unconsumed expectations when the emulator is closed."""

    FAIL = "fail"
    IGNORE = "ignore"


@dataclass(frozen=True)
class AssertMode:
    """Assertion strictness, one policy per axis.

    Attributes:
        on_missing: Policy when an action arrives with no expectation queued.
        on_excess: Policy when expectations remain at close.
    """

    on_missing: MissingPolicy = MissingPolicy.IGNORE
    on_excess: ExcessPolicy = ExcessPolicy.FAIL


Payload = Union[str, bool, None]


@dataclass(frozen=True)
class LogEntry:
    """One observed (or expected) pin action.

    Attributes:
        pin: GPIO number.
        action: Kind of action.
        payload: Trimmed direction/edge word, bool level for value changes,
            None for enable/disable.
    """

    pin: int
    action: ActionKind
    payload: Payload = None

    def __str__(self) -> str:
        payload = self.payload.value if isinstance(self.payload, Enum) else self.payload
        return f"({self.pin}, {self.action.label}, {payload!r})"


ExpectedEntry = Union[LogEntry, tuple]


def _coerce_mask(actions: ActionKind | Iterable[ActionKind]) -> frozenset[ActionKind]:
    if isinstance(actions, ActionKind):
        return frozenset({actions})
    mask = frozenset(actions)
    for action in mask:
        if not isinstance(action, ActionKind):
            raise TypeError(f"action mask entries must be ActionKind, got {action!r}")
    return mask


def _coerce_entry(entry: ExpectedEntry) -> LogEntry:
    if isinstance(entry, LogEntry):
        return entry
    return LogEntry(*entry)


class Emulator:
    """Records and verifies pin actions performed on a memory backend.

    Args:
        backend: Backend to observe. A fresh :class:`MemoryBackend` is
            created if omitted.
        log_mask: Action kinds appended to the log.
        assert_mask: Action kinds checked against the expectation queue.
        assert_mode: Assertion strictness.
    """

    def __init__(
        self,
        backend: MemoryBackend | None = None,
        *,
        log_mask: ActionKind | Iterable[ActionKind] = ALL_ACTIONS,
        assert_mask: ActionKind | Iterable[ActionKind] = ALL_ACTIONS,
        assert_mode: AssertMode = AssertMode(),
    ) -> None:
        self._backend = backend if backend is not None else MemoryBackend()
        self._log_mask = _coerce_mask(log_mask)
        self._assert_mask = _coerce_mask(assert_mask)
        self._assert_mode = assert_mode
        self._log: list[LogEntry] = []
        self._expected: deque[LogEntry] = deque()
        self._closed = False
        self._backend.add_observer(self.observe)

    def __enter__(self) -> Emulator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            # Do not mask the propagating error with an excess report
            self._detach()
            return
        self.close()

    @property
    def backend(self) -> MemoryBackend:
        """The observed backend."""
        return self._backend

    def pin(self, number: int) -> GpioPin:
        """Create a pin bound to the observed backend.

        Args:
            number: GPIO number.

        Returns:
            A new, disabled pin.
        """
        return GpioPin(number, self._backend)

    # -- Configuration ------------------------------------------------------

    @property
    def log_mask(self) -> frozenset[ActionKind]:
        """Action kinds that are logged."""
        return self._log_mask

    def set_log_mask(self, actions: ActionKind | Iterable[ActionKind]) -> None:
        """Replace the set of logged action kinds."""
        self._log_mask = _coerce_mask(actions)

    @property
    def assert_mask(self) -> frozenset[ActionKind]:
        """Action kinds that are checked against expectations."""
        return self._assert_mask

    def set_assert_mask(self, actions: ActionKind | Iterable[ActionKind]) -> None:
        """Replace the set of asserted action kinds."""
        self._assert_mask = _coerce_mask(actions)

    @property
    def assert_mode(self) -> AssertMode:
        """Current assertion strictness."""
        return self._assert_mode

    def set_assert_mode(self, *policies: MissingPolicy | ExcessPolicy) -> None:
        """Update assertion strictness.

        Only the axes a policy is given for change; the other axis keeps its
        current setting.

        Args:
            *policies: :class:`MissingPolicy` and/or :class:`ExcessPolicy` members.

        Raises:
            TypeError: If an argument is not a policy member.
        """
        mode = self._assert_mode
        for policy in policies:
            if isinstance(policy, MissingPolicy):
                mode = replace(mode, on_missing=policy)
            elif isinstance(policy, ExcessPolicy):
                mode = replace(mode, on_excess=policy)
            else:
                raise TypeError(f"expected MissingPolicy or ExcessPolicy, got {policy!r}")
        self._assert_mode = mode

    # -- Log and expectations -----------------------------------------------

    @property
    def log(self) -> tuple[LogEntry, ...]:
        """Logged actions, oldest first."""
        return tuple(self._log)

    def clear_log(self) -> None:
        """Discard all logged actions."""
        self._log.clear()

    @property
    def pending(self) -> tuple[LogEntry, ...]:
        """Expectations not yet consumed, next first."""
        return tuple(self._expected)

    def expect(self, entries: Iterable[ExpectedEntry]) -> None:
        """Replace the expectation queue.

        Matching restarts from the head of the new queue.

        Args:
            entries: :class:`LogEntry` objects or ``(pin, action, payload)`` tuples.
        """
        self._expected = deque(_coerce_entry(entry) for entry in entries)

    # -- Observation --------------------------------------------------------

    def observe(self, event: ChannelEvent) -> None:
        """Backend observer callback; only writes are of interest."""
        if event.op is ChannelOp.WRITE and event.payload is not None:
            self.record_write(event.pin, event.channel, event.payload)

    def record_write(self, pin: int, channel: Channel | str, data: str) -> LogEntry | None:
        """Translate a raw channel write into an action, then log and check it.

        Args:
            pin: GPIO number the channel belongs to.
            channel: Channel written.
            data: Raw payload, including the line terminator.

        Returns:
            The recognized entry, or None if the write is not a pin action.

        Raises:
            ExpectationError: If assertion is enabled for the action and it
                does not match the next expectation, or none is queued and
                the missing policy is FAIL.
        """
        entry = self._translate(pin, channel, data)
        if entry is None:
            return None

        if entry.action in self._log_mask and (not self._log or self._log[-1] != entry):
            self._log.append(entry)

        if entry.action in self._assert_mask:
            self._check(entry)
        return entry

    def verify(self) -> None:
        """Check that no expectations are left over.

        Raises:
            ExpectationError: If the excess policy is FAIL and expectations remain.
        """
        remaining = len(self._expected)
        if remaining and self._assert_mode.on_excess is ExcessPolicy.FAIL:
            raise ExpectationError(
                f"{remaining} expected action(s) were not performed, "
                f"next: {self._expected[0]}",
                expected=self._expected[0],
                remaining=remaining,
            )

    def close(self) -> None:
        """Stop observing the backend and verify leftover expectations.

        Calling close again has no effect.

        Raises:
            ExpectationError: See :meth:`verify`.
        """
        if self._closed:
            return
        self._detach()
        self.verify()

    def _detach(self) -> None:
        self._closed = True
        self._backend.remove_observer(self.observe)

    def _translate(self, pin: int, channel: Channel | str, data: str) -> LogEntry | None:
        try:
            action = _CHANNEL_ACTIONS[Channel(channel)]
        except ValueError:
            return None

        if action in (ActionKind.ENABLE, ActionKind.DISABLE):
            if data != f"{pin}\n":
                return None
            return LogEntry(pin, action)
        if action is ActionKind.CHANGE_VALUE:
            return LogEntry(pin, action, data.strip() != "0")
        return LogEntry(pin, action, data.strip())

    def _check(self, actual: LogEntry) -> None:
        if not self._expected:
            if self._assert_mode.on_missing is MissingPolicy.FAIL:
                raise ExpectationError(f"Unexpected action {actual}: no expected actions left", actual=actual)
            return

        expected = self._expected.popleft()
        if expected != actual:
            raise ExpectationError(
                f"Expected action {expected}, got {actual}",
                expected=expected,
                actual=actual,
            )
        logger.debug("Matched expected action %s", actual)
