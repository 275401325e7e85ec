"""Decode floor-mat signal presses into grid commands.

Signals ``1``-``8`` are coordinate taps: two taps inside the disambiguation
window select ``(row, col)``. Signal ``9`` is the command signal: a single
press fires the ray once the window elapses without a second press, a second
press inside the window resets the player obstacles instead.

The pending single-press timer is a logical deadline rather than a runtime
callback. :meth:`SignalDecoder.poll` fires it when the caller's clock passes
the deadline, and every check-and-clear of that slot happens under one lock
so a press and an expiring timer can never both emit for the same ``9``.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Dict, Iterator, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


MIN_SIGNAL = 1
MAX_SIGNAL = 9
COMMAND_SIGNAL = 9
DEFAULT_WINDOW_MS = 3000.0
DEFAULT_BUFFER_CAPACITY = 32


def wall_clock_ms() -> float:
    """Milliseconds since the epoch, the time base of feed record timestamps."""

    return time.time() * 1000.0


@dataclass(frozen=True)
class RawSignal:
    signal: int
    timestamp: float

    @property
    def is_command(self) -> bool:
        return self.signal == COMMAND_SIGNAL


@dataclass(frozen=True)
class ToggleCell:
    row: int
    col: int
    signals: Tuple[int, int] = (0, 0)


@dataclass(frozen=True)
class FireRay:
    pass


@dataclass(frozen=True)
class ResetObstacles:
    pass


Command = Union[ToggleCell, FireRay, ResetObstacles]


class SignalBuffer:
    """Bounded queue of recent signals shared by the command and coordinate tracks."""

    def __init__(self, capacity: int = DEFAULT_BUFFER_CAPACITY):
        self.capacity = capacity
        self._entries: Deque[RawSignal] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RawSignal]:
        return iter(list(self._entries))

    def _replace(self, entries: List[RawSignal]) -> None:
        self._entries = deque(entries, maxlen=self.capacity)

    def append(self, entry: RawSignal) -> None:
        self._entries.append(entry)

    def remove(self, entry: RawSignal) -> bool:
        try:
            self._entries.remove(entry)
        except ValueError:
            return False
        return True

    def commands(self) -> List[RawSignal]:
        return [entry for entry in self._entries if entry.is_command]

    def coordinates(self) -> List[RawSignal]:
        return [entry for entry in self._entries if not entry.is_command]

    def prune_coordinates(self, now: float, window_ms: float) -> None:
        self._replace(
            [
                entry
                for entry in self._entries
                if entry.is_command or now - entry.timestamp <= window_ms
            ]
        )

    def clear_coordinates(self) -> None:
        self._replace(self.commands())

    def keep_latest_coordinate(self, entry: RawSignal) -> None:
        self._replace(self.commands() + [entry])

    def clear(self) -> None:
        self._entries.clear()


class SignalDecoder:
    """Two-track state machine turning raw signals into :data:`Command` objects."""

    def __init__(
        self,
        grid_size: int,
        *,
        window_ms: float = DEFAULT_WINDOW_MS,
        capacity: int = DEFAULT_BUFFER_CAPACITY,
        on_command: Optional[Callable[[Command], None]] = None,
    ):
        self.grid_size = grid_size
        self.window_ms = window_ms
        self.buffer = SignalBuffer(capacity)
        self.on_command = on_command
        self._lock = threading.RLock()
        self._pending: Optional[RawSignal] = None
        self._latest_timestamp: Optional[float] = None

    @property
    def pending_deadline(self) -> Optional[float]:
        with self._lock:
            if self._pending is None:
                return None
            return self._pending.timestamp + self.window_ms

    def reset(self) -> None:
        with self._lock:
            self._pending = None
            self._latest_timestamp = None
            self.buffer.clear()

    def _emit(self, commands: List[Command]) -> List[Command]:
        if self.on_command is not None:
            for command in commands:
                self.on_command(command)
        return commands

    def _take_pending(self, now: float, *, inclusive: bool) -> Optional[Command]:
        # Caller holds the lock.
        if self._pending is None:
            return None
        deadline = self._pending.timestamp + self.window_ms
        if now < deadline or (now == deadline and not inclusive):
            return None
        self.buffer.remove(self._pending)
        self._pending = None
        logger.debug("Single command signal expired at %.0f: fire", deadline)
        return FireRay()

    def poll(self, now: float) -> List[Command]:
        """Fire the pending single-press timer if ``now`` reached its deadline."""

        with self._lock:
            command = self._take_pending(now, inclusive=True)
        return self._emit([command] if command is not None else [])

    def on_signal(self, signal: int, timestamp: float) -> List[Command]:
        with self._lock:
            if isinstance(signal, bool) or not isinstance(signal, int):
                logger.debug("Ignoring non-integer signal %r", signal)
                return []
            if not MIN_SIGNAL <= signal <= MAX_SIGNAL:
                logger.debug("Ignoring out-of-range signal %d", signal)
                return []
            if self._latest_timestamp is not None and timestamp < self._latest_timestamp:
                logger.debug(
                    "Rejecting signal %d at %.0f, older than %.0f",
                    signal,
                    timestamp,
                    self._latest_timestamp,
                )
                return []
            self._latest_timestamp = timestamp

            commands: List[Command] = []
            # A timer nobody polled must not merge with a press arriving after it.
            overdue = self._take_pending(timestamp, inclusive=False)
            if overdue is not None:
                commands.append(overdue)

            entry = RawSignal(signal, timestamp)
            if entry.is_command:
                command = self._on_command_signal(entry)
            else:
                command = self._on_coordinate_signal(entry)
            if command is not None:
                commands.append(command)
        return self._emit(commands)

    def _on_command_signal(self, entry: RawSignal) -> Optional[Command]:
        pending = self._pending
        if pending is not None and entry.timestamp - pending.timestamp <= self.window_ms:
            self._pending = None
            self.buffer.remove(pending)
            logger.debug("Double command signal within %.0f ms: reset", self.window_ms)
            return ResetObstacles()
        self.buffer.append(entry)
        self._pending = entry
        return None

    def _on_coordinate_signal(self, entry: RawSignal) -> Optional[Command]:
        self.buffer.prune_coordinates(entry.timestamp, self.window_ms)
        self.buffer.append(entry)

        coordinates = self.buffer.coordinates()
        if len(coordinates) < 2:
            return None
        first, second = coordinates[-2:]
        gap = second.timestamp - first.timestamp
        # Pruning and the ordering check keep the gap inside the window, so
        # this stale-pair rule only applies if either of them is relaxed.
        if not 0 <= gap <= self.window_ms:
            self.buffer.keep_latest_coordinate(second)
            return None

        self.buffer.clear_coordinates()
        row = first.signal - 1
        col = second.signal - 1
        if not (0 <= row < self.grid_size and 0 <= col < self.grid_size):
            logger.debug("Discarding signals [%d,%d]: outside the grid", first.signal, second.signal)
            return None
        return ToggleCell(row, col, signals=(first.signal, second.signal))


@dataclass(frozen=True)
class FeedStatus:
    connected: bool
    message: str


class SignalIngress:
    """Filter raw feed records before they reach the decoder."""

    def __init__(
        self,
        session_start: float,
        *,
        group_id: Optional[int] = 1,
        clock: Callable[[], float] = wall_clock_ms,
    ):
        self.session_start = session_start
        self.group_id = group_id
        self.clock = clock
        self.feed: Optional[object] = None
        self.status = FeedStatus(False, "Signal feed: not configured (manual input only)")

    @property
    def manual_only(self) -> bool:
        return not self.status.connected

    def accept(self, record: object) -> Optional[RawSignal]:
        if not isinstance(record, Mapping):
            return None
        if self.group_id is not None and record.get("groupId", self.group_id) != self.group_id:
            return None
        signal = record.get("matNumber")
        if isinstance(signal, bool) or not isinstance(signal, int):
            return None
        if not MIN_SIGNAL <= signal <= MAX_SIGNAL:
            return None
        timestamp = record.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            timestamp = self.clock()
        if timestamp < self.session_start:
            logger.debug("Dropping backlog record %r", record)
            return None
        return RawSignal(signal, float(timestamp))

    def connect(
        self, feed: Optional[object], on_signal: Callable[[RawSignal], None]
    ) -> FeedStatus:
        """Subscribe to ``feed`` or fall back to manual-only input."""

        if feed is None:
            self.status = FeedStatus(False, "Signal feed: not configured (manual input only)")
            return self.status

        def handle(record: object) -> None:
            accepted = self.accept(record)
            if accepted is not None:
                on_signal(accepted)

        try:
            feed.subscribe(handle)  # type: ignore[attr-defined]
        except (OSError, RuntimeError, ValueError) as exc:
            logger.warning("Signal feed unavailable: %s", exc)
            self.status = FeedStatus(False, "Signal feed: unavailable (manual input only)")
            return self.status
        self.feed = feed
        self.status = FeedStatus(
            True, "Signal feed: connected (1~8: coordinates, 9: single=fire, double=reset)"
        )
        return self.status

    def disconnect(self) -> None:
        if self.feed is not None:
            unsubscribe = getattr(self.feed, "unsubscribe", None)
            if unsubscribe is not None:
                unsubscribe()
            self.feed = None
        self.status = FeedStatus(False, "Signal feed: disconnected (manual input only)")


class JsonLinesFeed:
    """Feed that replays mat-press records stored one JSON object per line."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.subscribed = False

    def records(self) -> Iterator[Dict[str, object]]:
        with self.path.open() as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"{self.path}:{line_number}: {exc.msg}") from exc

    def subscribe(self, callback: Callable[[Dict[str, object]], None]) -> None:
        self.subscribed = True
        for record in self.records():
            if not self.subscribed:
                break
            callback(record)

    def unsubscribe(self) -> None:
        self.subscribed = False
