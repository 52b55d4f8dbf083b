"""
Note event data structures shared by the reader, resolver and writer.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from midi2roll.app_config import get_note_name


class NoteAction(Enum):
    """What a note event does to its key."""
    PRESS = "press"
    RELEASE = "release"


@dataclass(frozen=True)
class NoteEvent:
    """One observed MIDI note action, at an absolute tick time."""
    timestamp: int
    track: int
    channel: int
    pitch: int
    action: NoteAction

    @property
    def note_name(self) -> str:
        return get_note_name(self.pitch)


@dataclass(frozen=True)
class InFlightPress:
    """A hole that is currently open, and who opened it."""
    track: int
    channel: int
    timestamp: int


@dataclass(frozen=True)
class NoteInterval:
    """A finished note on the roll: start tick, length in ticks and resolved pitch."""
    start: int
    duration: int
    pitch: int

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def note_name(self) -> str:
        return get_note_name(self.pitch)


@dataclass(frozen=True)
class TrackInfo:
    """Descriptive metadata of one MIDI track."""
    track: int
    name: Optional[str] = None
    instrument: Optional[str] = None


@dataclass(frozen=True)
class ChannelInfo:
    """Bank and program used by one channel within one track."""
    track: int
    channel: int
    bank: int = 0
    program: int = 0
