"""
Track/channel selection and transposition.

A roll is punched from a chosen set of (track, channel) sources, each with its
own semitone offset. Selectors are written as ``T,C`` or ``T,C+N`` / ``T,C-N``,
e.g. ``1,0`` or ``2,1-12``.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from midi2roll.midi_events import NoteAction, NoteEvent

MIDI_CHANNEL_COUNT = 16
OFFSET_MIN = -128
OFFSET_MAX = 127


class SelectorError(ValueError):
    """Raised for a malformed track selector."""
    pass


@dataclass(frozen=True)
class ChannelSelector:
    """Selects one channel of one track and the offset to apply to its notes."""
    track: int
    channel: int
    offset: int = 0

    def matches(self, event: NoteEvent) -> bool:
        return event.track == self.track and event.channel == self.channel

    def __str__(self) -> str:
        if self.offset:
            return f"{self.track},{self.channel}{self.offset:+d}"
        return f"{self.track},{self.channel}"


def _parse_unsigned(text: str) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not text.isdecimal():
        raise ValueError(f"invalid digit found in {text!r}")
    return int(text)


def parse_track_selector(arg: str) -> ChannelSelector:
    """
    Parses a selector of the form ``track,channel[+offset|-offset]``.

    Raises:
        SelectorError: If the selector is malformed or out of range.
    """
    track_str, sep, channel_rest = arg.partition(",")
    if not sep:
        raise SelectorError("expected a ','")

    try:
        track = _parse_unsigned(track_str)
    except ValueError as e:
        raise SelectorError(f"bad track number: {e}") from e

    sign_pos = next((i for i, c in enumerate(channel_rest) if c in "+-"), None)
    if sign_pos is None:
        channel_str, offset_str = channel_rest, ""
    else:
        channel_str, offset_str = channel_rest[:sign_pos], channel_rest[sign_pos:]

    try:
        channel = _parse_unsigned(channel_str)
    except ValueError as e:
        raise SelectorError(f"bad channel number: {e}") from e
    if channel >= MIDI_CHANNEL_COUNT:
        raise SelectorError(f"bad channel number: {channel} is not between 0 and {MIDI_CHANNEL_COUNT - 1}")

    offset = 0
    if offset_str:
        try:
            magnitude = _parse_unsigned(offset_str[1:])
        except ValueError as e:
            raise SelectorError(f"bad offset number: {e}") from e
        offset = -magnitude if offset_str[0] == "-" else magnitude
        if not OFFSET_MIN <= offset <= OFFSET_MAX:
            raise SelectorError(f"bad offset number: {offset} is not between {OFFSET_MIN} and {OFFSET_MAX}")

    return ChannelSelector(track=track, channel=channel, offset=offset)


def parse_track_selectors(args: Iterable[str]) -> List[ChannelSelector]:
    """Parses several selectors, naming the offending one in any error."""
    selectors = []
    for arg in args:
        try:
            selectors.append(parse_track_selector(arg))
        except SelectorError as e:
            raise SelectorError(f"malformed track selector \"{arg}\": {e}") from e
    return selectors


class SelectionFilter:
    """
    Per-event selection callable handed to the resolver.

    Returns the offset of the first selector matching the event's track and
    channel, or None to drop it. Without selectors every event is selected
    unshifted. Press counts per (track, channel) are tallied as a side channel
    for reporting, for every event seen, selected or not.
    """

    def __init__(self, selectors: Iterable[ChannelSelector] = ()):
        self.selectors: List[ChannelSelector] = list(selectors)
        self.press_counts: Counter = Counter()
        self.logger = logging.getLogger(f"{__name__}.SelectionFilter")
        if self.selectors:
            self.logger.info(f"[SELECTION] Selected: {', '.join(str(s) for s in self.selectors)}")
        else:
            self.logger.info("[SELECTION] No selectors given, using every track and channel")

    @property
    def selects_all(self) -> bool:
        return not self.selectors

    def __call__(self, event: NoteEvent) -> Optional[int]:
        if event.action is NoteAction.PRESS:
            self.press_counts[(event.track, event.channel)] += 1
        if not self.selectors:
            return 0
        for selector in self.selectors:
            if selector.matches(event):
                return selector.offset
        return None

    def sorted_press_counts(self) -> List[Tuple[Tuple[int, int], int]]:
        return sorted(self.press_counts.items())
