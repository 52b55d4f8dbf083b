"""
MIDI file generation from resolved roll intervals.

Writes the note intervals produced by the resolver back out as a simplified
MIDI file using the midiutil library, so a roll can be auditioned before it is
punched. All times are in ticks of the source file's time base.

Features:
- Single note track on channel 0 with a fixed velocity
- Tempo, bank select and program change up front
- Zero-length intervals skipped (they would leave a hanging note on)
- Comprehensive logging of the write process
"""
import logging
import os
from typing import Dict, Iterable, List, Tuple

import mido
from midiutil.MidiFile import MIDIFile  # type: ignore

from midi2roll.app_config import (
    DEFAULT_MIDI_TEMPO,
    DEFAULT_OUTPUT_BANK,
    DEFAULT_OUTPUT_PROGRAM,
    DEFAULT_OUTPUT_VELOCITY,
)
from midi2roll.midi_events import NoteInterval

BANK_SELECT_CONTROL = 0


class MidiWriter:
    """Handles the creation and saving of MIDI data."""

    def __init__(self, time_base: int, num_tracks: int = 1, midi_file_format: int = 1,
                 remove_duplicates: bool = True):
        """
        Initializes the MIDIFile object.
        Args:
            time_base: Ticks per quarter note; event times are given in these ticks.
            num_tracks: Number of note tracks for the MIDI file.
            midi_file_format: MIDI file format (0, 1, or 2).
                               Format 1 puts the tempo on its own track.
            remove_duplicates: Whether midiutil should remove duplicate notes.
        """
        self.logger = logging.getLogger(f"{__name__}.MidiWriter")
        self.time_base = time_base
        self.notes_buffer: List[Dict] = []  # Buffer for notes before adding to MIDIFile
        self.tempo: int = DEFAULT_MIDI_TEMPO
        self.skipped_notes = 0

        # MIDIFile parameters:
        # numTracks, removeDuplicates, deinterleave, adjust_origin, file_format
        self.mf = MIDIFile(numTracks=num_tracks,
                           removeDuplicates=remove_duplicates,
                           deinterleave=False,  # One hole per pitch never overlaps itself
                           adjust_origin=False,  # Keep absolute time
                           file_format=midi_file_format,
                           ticks_per_quarternote=time_base,
                           eventtime_is_ticks=True)

    def set_track_name(self, track: int, time: int, name: str) -> None:
        """Sets the name for a given track."""
        self.mf.addTrackName(track, time, name)

    def set_tempo(self, track: int, time: int, tempo: int) -> None:
        """
        Sets the tempo for a given track.
        Args:
            tempo: Microseconds per beat, as stored in MIDI files.
        """
        self.tempo = tempo
        self.mf.addTempo(track, time, mido.tempo2bpm(tempo))

    def add_bank_select(self, track: int, channel: int, time: int, bank: int) -> None:
        self.mf.addControllerEvent(track, channel, time, BANK_SELECT_CONTROL, bank)

    def add_program_change(self, track: int, channel: int, time: int, program: int) -> None:
        """Adds a program change event (instrument change)."""
        self.mf.addProgramChange(track, channel, time, program)

    def add_note_to_buffer(self, track: int, channel: int, pitch: int,
                           start_tick: int, duration_ticks: int, volume: int = DEFAULT_OUTPUT_VELOCITY) -> None:
        """
        Adds a note to an internal buffer. Notes from the buffer are written to the
        MIDIFile object when save_to_disk is called.
        """
        if duration_ticks <= 0:
            self.skipped_notes += 1
            self.logger.debug(f"[MIDI-WRITE] Skipping zero-length note {pitch} at {start_tick}")
            return
        self.notes_buffer.append({
            'track': track,
            'channel': channel,
            'pitch': pitch,
            'start_time': start_tick,
            'duration': duration_ticks,
            'volume': volume
        })

    def add_intervals(self, intervals: Iterable[NoteInterval], track: int = 0, channel: int = 0,
                      volume: int = DEFAULT_OUTPUT_VELOCITY) -> None:
        for interval in intervals:
            self.add_note_to_buffer(track, channel, interval.pitch, interval.start, interval.duration, volume)

    def _commit_buffer_to_midifile(self) -> None:
        """Transfers all notes from the internal buffer to the MIDIFile object."""
        for note_params in self.notes_buffer:
            self.mf.addNote(
                note_params['track'],
                note_params['channel'],
                note_params['pitch'],
                note_params['start_time'],
                note_params['duration'],
                note_params['volume']
            )
        self.notes_buffer.clear()

    def save_file(self, filename: str) -> bool:
        """
        Alias for save_to_disk that returns only success status.
        """
        success, message = self.save_to_disk(filename)
        self.logger.info(f"[MIDI-SAVE-FILE] Result: success={success}, message={message}")
        return success

    def save_to_disk(self, filename: str) -> Tuple[bool, str]:
        """
        Commits buffered notes and writes the MIDI data to a file.
        Args:
            filename: The path to save the MIDI file.
        Returns:
            A tuple (success, message).
        """
        if self.skipped_notes:
            self.logger.info(f"[SAVE-TO-DISK] Skipped {self.skipped_notes} zero-length notes")
        self.logger.info(f"[SAVE-TO-DISK] Notes buffer contains {len(self.notes_buffer)} notes")
        self._commit_buffer_to_midifile()

        try:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(filename, 'wb') as outf:
                self.mf.writeFile(outf)
            self.logger.info(f"[SAVE-TO-DISK-SUCCESS] File saved: {filename}")
            return True, f'Saved to disk: {filename}'
        except OSError as e:
            self.logger.error(f"[SAVE-TO-DISK-ERROR] Failed to save: {e}", exc_info=True)
            return False, f"Can't save to disk: {filename}. Error: {e}"


def write_intervals(filename: str,
                    intervals: Iterable[NoteInterval],
                    time_base: int,
                    tempo: int = DEFAULT_MIDI_TEMPO,
                    velocity: int = DEFAULT_OUTPUT_VELOCITY,
                    program: int = DEFAULT_OUTPUT_PROGRAM,
                    bank: int = DEFAULT_OUTPUT_BANK,
                    track_name: str = "") -> Tuple[bool, str]:
    """
    Writes intervals as a format 1 file: a tempo track and one note track on channel 0.
    """
    writer = MidiWriter(time_base=time_base)
    track = 0
    if track_name:
        writer.set_track_name(track, 0, track_name)
    writer.set_tempo(track, 0, tempo)
    writer.add_bank_select(track, 0, 0, bank)
    writer.add_program_change(track, 0, 0, program)
    writer.add_intervals(intervals, track=track, channel=0, volume=velocity)
    return writer.save_to_disk(filename)
