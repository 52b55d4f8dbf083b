"""
Press/release resolution for piano-roll holes.

Pairs note presses with note releases and turns them into finished note
intervals. The roll has exactly one hole per pitch, shared by every selected
track and channel, so the live state is keyed on the resolved pitch alone;
track and channel are only kept for diagnostics.

Features:
- Pitch validation against the roll's playable range
- Tolerance for near-simultaneous re-presses of an open hole
- Suppression of the releases that belong to absorbed re-presses
- Structured diagnostics for every recoverable anomaly
"""
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional

import numpy as np

from midi2roll.app_config import DEFAULT_ROLL_LAYOUT, FUDGE_FACTOR_DIVISOR, RollLayout, get_note_name
from midi2roll.midi_events import InFlightPress, NoteAction, NoteEvent, NoteInterval

# Per-event selection: None drops the event, an int is the semitone offset.
OffsetFilter = Callable[[NoteEvent], Optional[int]]

INTERVAL_DTYPE = np.dtype([("start", np.int64), ("duration", np.int64), ("pitch", np.int16)])


class ResolverError(Exception):
    """Base exception for press/release resolution errors."""
    pass


class PitchOutOfRangeError(ResolverError):
    """A pitch, after applying its offset, does not map onto a roll hole."""

    def __init__(self, event: NoteEvent, offset: int, layout: RollLayout):
        self.event = event
        self.offset = offset
        self.resolved_pitch = event.pitch + offset
        super().__init__(
            f"at {event.timestamp}, offsetting note {event.note_name} on track {event.track} "
            f"channel {event.channel} by {offset} puts it outside of piano roll range "
            f"{layout.describe()}"
        )


class FeedOrderError(ResolverError):
    """An event arrived with a timestamp earlier than the previous one."""
    pass


class ResolverStateError(ResolverError):
    """The resolver was used after its pass was finished."""
    pass


class DiagnosticKind(Enum):
    OUT_OF_RANGE = "out_of_range"
    ANOMALOUS_REPRESS = "anomalous_repress"
    ORPHAN_RELEASE = "orphan_release"


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable anomaly observed while resolving one event."""
    kind: DiagnosticKind
    timestamp: int
    track: int
    channel: int
    pitch: int
    message: str
    offset: int = 0
    previous: Optional[InFlightPress] = None

    def __str__(self) -> str:
        return self.message


DiagnosticSink = Callable[[Diagnostic], None]


def fudge_factor_for(time_base: int) -> int:
    """Maximum tick gap between two presses on one hole that still counts as one gesture."""
    return time_base // FUDGE_FACTOR_DIVISOR


def resolve_pitch(event: NoteEvent, offset: int, layout: RollLayout = DEFAULT_ROLL_LAYOUT) -> int:
    """
    Applies the semitone offset to the event's pitch and validates the result.

    Args:
        event: The raw note event.
        offset: Signed semitone offset from the selection filter.
        layout: Roll layout defining the playable range.

    Returns:
        The resolved pitch.

    Raises:
        PitchOutOfRangeError: If the resolved pitch is outside the playable range.
    """
    resolved = event.pitch + offset
    if not layout.contains(resolved):
        raise PitchOutOfRangeError(event, offset, layout)
    return resolved


def intervals_to_array(intervals: Iterable[NoteInterval]) -> np.ndarray:
    """Packs intervals into a structured array with start, duration and pitch fields."""
    return np.array([(n.start, n.duration, n.pitch) for n in intervals], dtype=INTERVAL_DTYPE)


def scale_intervals(intervals: Iterable[NoteInterval], divisor: float) -> List[NoteInterval]:
    """
    Divides interval times by a time divisor, rounding to whole ticks.

    Start and end are rounded separately so notes that touch before scaling
    still touch afterwards.
    """
    if divisor <= 0:
        raise ValueError(f"Time divisor {divisor} must be positive")
    intervals = list(intervals)
    if divisor == 1:
        return intervals
    arr = intervals_to_array(intervals)
    starts = np.rint(arr["start"] / divisor).astype(np.int64)
    ends = np.rint((arr["start"] + arr["duration"]) / divisor).astype(np.int64)
    return [
        NoteInterval(start=int(start), duration=int(end - start), pitch=int(pitch))
        for start, end, pitch in zip(starts, ends, arr["pitch"])
    ]


class DurationCollector:
    """Accumulates finished intervals in the order the resolver emits them (release order)."""

    def __init__(self):
        self._intervals: List[NoteInterval] = []

    def add(self, interval: NoteInterval) -> None:
        self._intervals.append(interval)

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[NoteInterval]:
        return iter(self._intervals)

    @property
    def intervals(self) -> List[NoteInterval]:
        return list(self._intervals)

    def sorted_by_start(self) -> List[NoteInterval]:
        """Intervals in chronological order of their start; ties keep emission order."""
        return sorted(self._intervals, key=lambda n: n.start)

    def to_array(self) -> np.ndarray:
        return intervals_to_array(self._intervals)


class PressReleaseResolver:
    """
    State machine turning a time-ordered note event feed into note intervals.

    One instance serves exactly one pass over one feed. Per resolved pitch it
    holds at most one open press and a suppression count of extra presses seen
    while the hole was already open.
    """

    def __init__(self,
                 time_base: Optional[int] = None,
                 layout: RollLayout = DEFAULT_ROLL_LAYOUT,
                 fudge_factor_ticks: Optional[int] = None,
                 diagnostic_sink: Optional[DiagnosticSink] = None):
        """
        Args:
            time_base: Ticks per beat of the feed; sets the fudge factor.
            layout: Roll layout used to validate resolved pitches.
            fudge_factor_ticks: Explicit fudge factor, overriding the time base.
            diagnostic_sink: Optional callback receiving every Diagnostic.
        """
        if fudge_factor_ticks is None:
            if time_base is None:
                raise ValueError("Either time_base or fudge_factor_ticks is required")
            fudge_factor_ticks = fudge_factor_for(time_base)
        if fudge_factor_ticks < 0:
            raise ValueError(f"Fudge factor {fudge_factor_ticks} must not be negative")

        self.logger = logging.getLogger(f"{__name__}.PressReleaseResolver")
        self.layout = layout
        self.fudge_factor_ticks = fudge_factor_ticks
        self.diagnostic_sink = diagnostic_sink

        self.collector = DurationCollector()
        self.diagnostics: List[Diagnostic] = []

        self._in_flight: Dict[int, InFlightPress] = {}
        self._suppressed: Counter = Counter()
        # Bookkeeping for reporting: presses absorbed and releases they explained, per pitch.
        self.repress_counts: Counter = Counter()
        self.absorbed_release_counts: Counter = Counter()

        self._last_timestamp: Optional[int] = None
        self._finished = False

    @property
    def open_pitches(self) -> List[int]:
        """Pitches whose hole is currently open."""
        return sorted(self._in_flight)

    def in_flight(self, pitch: int) -> Optional[InFlightPress]:
        return self._in_flight.get(pitch)

    def suppression_count(self, pitch: int) -> int:
        return self._suppressed[pitch]

    def counts_by_kind(self) -> Counter:
        return Counter(d.kind for d in self.diagnostics)

    def feed(self, event: NoteEvent, offset: int = 0) -> Optional[NoteInterval]:
        """
        Processes one selected event.

        Args:
            event: The note event, not earlier than any previously fed event.
            offset: Semitone offset chosen by the selection filter.

        Returns:
            The interval closed by this event, if any.

        Raises:
            FeedOrderError: If the event is earlier than the previous one.
            ResolverStateError: If the pass was already finished.
        """
        self._admit(event)

        try:
            pitch = resolve_pitch(event, offset, self.layout)
        except PitchOutOfRangeError as e:
            self._report(DiagnosticKind.OUT_OF_RANGE, event, e.resolved_pitch, str(e), offset=offset)
            return None

        previous = self._in_flight.get(pitch)

        if event.action is NoteAction.PRESS:
            if previous is None:
                self._in_flight[pitch] = InFlightPress(
                    track=event.track,
                    channel=event.channel,
                    timestamp=event.timestamp,
                )
            else:
                self._absorb_repress(event, pitch, previous, offset)
            return None

        if event.action is NoteAction.RELEASE:
            if previous is not None:
                del self._in_flight[pitch]
                interval = NoteInterval(
                    start=previous.timestamp,
                    duration=event.timestamp - previous.timestamp,
                    pitch=pitch,
                )
                self.collector.add(interval)
                return interval
            self._release_closed_hole(event, pitch, offset)
            return None

        raise ResolverError(f"Unknown note action {event.action!r}")

    def run(self, events: Iterable[NoteEvent], offset_filter: OffsetFilter) -> DurationCollector:
        """Feeds every event the filter selects, then finishes the pass."""
        for event in events:
            offset = offset_filter(event)
            if offset is None:
                continue
            self.feed(event, offset)
        return self.finish()

    def finish(self) -> DurationCollector:
        """
        Ends the pass and returns the collected intervals.

        Holes still open are dropped without an interval or a diagnostic.
        """
        self._finished = True
        self.logger.info(
            f"[RESOLVER] Pass finished: {len(self.collector)} intervals, "
            f"{len(self.diagnostics)} diagnostics"
        )
        return self.collector

    def _admit(self, event: NoteEvent) -> None:
        if self._finished:
            raise ResolverStateError("Resolver pass already finished; use a new resolver per feed")
        if self._last_timestamp is not None and event.timestamp < self._last_timestamp:
            raise FeedOrderError(
                f"Event at {event.timestamp} on track {event.track} channel {event.channel} "
                f"arrived after an event at {self._last_timestamp}; the feed must be time-ordered"
            )
        self._last_timestamp = event.timestamp

    def _absorb_repress(self, event: NoteEvent, pitch: int, previous: InFlightPress, offset: int) -> None:
        # The first press keeps the hole; its timestamp stays the interval start.
        if event.timestamp - previous.timestamp > self.fudge_factor_ticks:
            message = (
                f"at {event.timestamp}, note {get_note_name(pitch)} on track {event.track} "
                f"channel {event.channel} already pressed at {previous.timestamp} by "
                f"{previous.track},{previous.channel}"
            )
            self._report(DiagnosticKind.ANOMALOUS_REPRESS, event, pitch, message,
                         offset=offset, previous=previous)
        self._suppressed[pitch] += 1
        self.repress_counts[pitch] += 1

    def _release_closed_hole(self, event: NoteEvent, pitch: int, offset: int) -> None:
        if self._suppressed[pitch] > 0:
            self._suppressed[pitch] -= 1
            self.absorbed_release_counts[pitch] += 1
            return
        message = (
            f"at {event.timestamp} on track {event.track} channel {event.channel}, "
            f"note {get_note_name(pitch)} is not pressed yet"
        )
        self._report(DiagnosticKind.ORPHAN_RELEASE, event, pitch, message, offset=offset)

    def _report(self, kind: DiagnosticKind, event: NoteEvent, pitch: int, message: str,
                offset: int = 0, previous: Optional[InFlightPress] = None) -> None:
        diagnostic = Diagnostic(
            kind=kind,
            timestamp=event.timestamp,
            track=event.track,
            channel=event.channel,
            pitch=pitch,
            message=message,
            offset=offset,
            previous=previous,
        )
        self.diagnostics.append(diagnostic)
        self.logger.warning(f"[RESOLVER] {message}")
        if self.diagnostic_sink is not None:
            self.diagnostic_sink(diagnostic)


def note_durations(events: Iterable[NoteEvent],
                   time_base: int,
                   offset_filter: OffsetFilter,
                   layout: RollLayout = DEFAULT_ROLL_LAYOUT,
                   diagnostic_sink: Optional[DiagnosticSink] = None,
                   fudge_factor_ticks: Optional[int] = None) -> List[NoteInterval]:
    """
    Resolves a whole feed with a fresh resolver.

    Returns:
        Intervals in emission (release) order; sort by start for chronological output.
    """
    resolver = PressReleaseResolver(
        time_base=time_base,
        layout=layout,
        fudge_factor_ticks=fudge_factor_ticks,
        diagnostic_sink=diagnostic_sink,
    )
    return resolver.run(events, offset_filter).intervals
