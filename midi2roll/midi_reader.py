"""
MIDI file reader producing the note event feed.

Decodes a Standard MIDI File with mido into absolute-time note events, one
feed for the whole song ordered by tick time, and collects the song metadata
worth reporting: track and instrument names, bank and program per channel,
time base, tempo, copyright, markers and text.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import mido

from midi2roll.midi_events import ChannelInfo, NoteAction, NoteEvent, TrackInfo

MIDI_FORMAT_NAMES = {
    0: "single track",
    1: "multiple track",
    2: "multiple song",
}

BANK_SELECT_CONTROL = 0


class MidiReadError(Exception):
    """Raised when a MIDI file cannot be opened or decoded."""
    pass


@dataclass
class _ChannelState:
    bank: Optional[int] = None
    program: Optional[int] = None


class MidiReader:
    """Reads and parses MIDI files"""

    def __init__(self, filepath: str):
        self.filepath = filepath
        self.logger = logging.getLogger(f"{__name__}.MidiReader")

        self.notes: List[NoteEvent] = []
        self.midi_format: Optional[int] = None
        self.time_base: Optional[int] = None
        self.tempo: Optional[int] = None  # microseconds per beat
        self.copyright: Optional[str] = None

        self._tracks: Dict[int, TrackInfo] = {}
        self._channels: Dict[Tuple[int, int], _ChannelState] = {}

        self._parse_file()

    def _parse_file(self):
        """Parse MIDI file using mido, track by track."""
        try:
            mid = mido.MidiFile(self.filepath)
        except (OSError, EOFError, ValueError, KeyError) as e:
            raise MidiReadError(f"failed to read MIDI file {self.filepath}: {e}") from e

        self._read_header(mid)

        for track_index, track in enumerate(mid.tracks):
            self._tracks[track_index] = TrackInfo(track=track_index)
            timestamp = 0
            for msg in track:
                # Meta and sysex events advance time too.
                timestamp += msg.time
                if msg.is_meta:
                    self._handle_meta(track_index, timestamp, msg)
                else:
                    self._handle_message(track_index, timestamp, msg)

        # Tracks are decoded one after another; merge them into one time-ordered
        # feed. The sort is stable, so same-tick events keep track and file order.
        self.notes.sort(key=lambda n: n.timestamp)
        self.logger.info(f"[MIDI-READ] {len(self.notes)} note events in {len(mid.tracks)} tracks")

    def _read_header(self, mid: mido.MidiFile):
        self.midi_format = mid.type
        format_name = MIDI_FORMAT_NAMES.get(mid.type, "unknown!")
        if mid.type in (1, 2):
            format_name = f"{format_name} ({len(mid.tracks)})"
        self.logger.info(f"[MIDI-READ] MIDI file format: {format_name}")

        # mido reports SMPTE timecode divisions as non-positive ticks per beat.
        if mid.ticks_per_beat > 0:
            self.time_base = mid.ticks_per_beat
            self.logger.info(f"[MIDI-READ] {self.time_base} MIDI ticks per metronome beat")
        else:
            self.logger.warning("[MIDI-READ] Unsupported timecode-based MIDI file")

    def _handle_meta(self, track: int, timestamp: int, msg: mido.MetaMessage):
        info = self._tracks[track]
        if msg.type == 'track_name':
            if info.name is None:
                self._tracks[track] = TrackInfo(track, msg.name, info.instrument)
            else:
                self.logger.warning(f"[MIDI-READ] Track {track} given multiple names: {msg.name!r}")
        elif msg.type == 'instrument_name':
            if info.instrument is None:
                self._tracks[track] = TrackInfo(track, info.name, msg.name)
            else:
                self.logger.warning(f"[MIDI-READ] Track {track} given multiple instrument names: {msg.name!r}")
        elif msg.type == 'set_tempo':
            if self.tempo is not None:
                self.logger.warning("[MIDI-READ] Tempo changes are not supported; using new tempo")
            self.tempo = msg.tempo
            self.logger.info(f"[MIDI-READ] Tempo: {round(mido.tempo2bpm(msg.tempo))} beats per minute")
        elif msg.type == 'copyright':
            self.copyright = msg.text
            self.logger.info(f"[MIDI-READ] Copyright: {msg.text!r}")
        elif msg.type == 'marker':
            self.logger.info(f"[MIDI-READ] Marker: {msg.text!r}")
        elif msg.type == 'text':
            self.logger.info(f"[MIDI-READ] Text: {msg.text!r}")
        elif msg.type != 'end_of_track':
            self.logger.debug(f"[MIDI-READ] at {timestamp}: {msg}")

    def _handle_message(self, track: int, timestamp: int, msg: mido.Message):
        if msg.type == 'note_on':
            self._channel_state(track, msg.channel)
            # Note on with zero velocity stands in for note off.
            # Some songs have no note off events and only use this form.
            action = NoteAction.RELEASE if msg.velocity == 0 else NoteAction.PRESS
            self.notes.append(NoteEvent(timestamp, track, msg.channel, msg.note, action))
        elif msg.type == 'note_off':
            self.notes.append(NoteEvent(timestamp, track, msg.channel, msg.note, NoteAction.RELEASE))
        elif msg.type == 'control_change' and msg.control == BANK_SELECT_CONTROL:
            state = self._channel_state(track, msg.channel)
            if state.bank is None:
                state.bank = msg.value
            else:
                self.logger.warning(f"[MIDI-READ] Track {track} set to another bank ({msg.value}) mid-song")
        elif msg.type == 'program_change':
            state = self._channel_state(track, msg.channel)
            if state.program is None:
                state.program = msg.program
            else:
                self.logger.warning(f"[MIDI-READ] Track {track} set to another program ({msg.program}) mid-song")

    def _channel_state(self, track: int, channel: int) -> _ChannelState:
        return self._channels.setdefault((track, channel), _ChannelState())

    def get_notes(self) -> List[NoteEvent]:
        """Get all note events, ordered by timestamp"""
        return self.notes

    def get_notes_in_range(self, start_tick: int, end_tick: int) -> List[NoteEvent]:
        """Get note events within a specific tick range"""
        return [n for n in self.notes if start_tick <= n.timestamp < end_tick]

    def get_tracks(self) -> List[TrackInfo]:
        return [self._tracks[t] for t in sorted(self._tracks)]

    def get_channels(self) -> List[ChannelInfo]:
        """Bank and program per (track, channel), defaulting missing values to 0."""
        channels = []
        for (track, channel), state in sorted(self._channels.items()):
            bank = state.bank
            if bank is None:
                self.logger.error(f"[MIDI-READ] Track {track} channel {channel} has no MIDI bank set")
                bank = 0
            program = state.program
            if program is None:
                self.logger.error(f"[MIDI-READ] Track {track} channel {channel} has no MIDI program set")
                program = 0
            channels.append(ChannelInfo(track=track, channel=channel, bank=bank, program=program))
        return channels
