import logging
import struct

import mido
import pytest

from midi2roll.midi_events import ChannelInfo, NoteAction, NoteEvent, TrackInfo
from midi2roll.midi_reader import MidiReadError, MidiReader


@pytest.fixture
def song(midi_file_factory):
    conductor = [
        mido.MetaMessage('track_name', name='Conductor'),
        mido.MetaMessage('set_tempo', tempo=600000),
        mido.MetaMessage('copyright', text='(c) nobody'),
    ]
    piano = [
        mido.MetaMessage('track_name', name='Piano'),
        mido.MetaMessage('instrument_name', name='Grand'),
        mido.Message('control_change', channel=0, control=0, value=2),
        mido.Message('program_change', channel=0, program=5),
        mido.Message('note_on', channel=0, note=60, velocity=64, time=0),
        mido.Message('note_on', channel=0, note=60, velocity=0, time=480),
        mido.Message('note_on', channel=1, note=48, velocity=70, time=0),
        mido.Message('note_off', channel=1, note=48, velocity=0, time=240),
    ]
    bass = [
        mido.MetaMessage('marker', text='verse', time=100),
        mido.Message('note_on', channel=0, note=36, velocity=80, time=20),
        mido.Message('note_off', channel=0, note=36, velocity=0, time=600),
    ]
    return midi_file_factory([conductor, piano, bass])


class TestMidiReader:
    def test_header(self, song):
        reader = MidiReader(song)
        assert reader.midi_format == 1
        assert reader.time_base == 480
        assert reader.tempo == 600000
        assert reader.copyright == '(c) nobody'

    def test_notes_are_merged_in_time_order(self, song):
        reader = MidiReader(song)
        assert reader.get_notes() == [
            NoteEvent(0, 1, 0, 60, NoteAction.PRESS),
            NoteEvent(120, 2, 0, 36, NoteAction.PRESS),
            NoteEvent(480, 1, 0, 60, NoteAction.RELEASE),
            NoteEvent(480, 1, 1, 48, NoteAction.PRESS),
            NoteEvent(720, 1, 1, 48, NoteAction.RELEASE),
            NoteEvent(720, 2, 0, 36, NoteAction.RELEASE),
        ]

    def test_zero_velocity_note_on_is_a_release(self, song):
        reader = MidiReader(song)
        releases = [n for n in reader.get_notes() if n.pitch == 60 and n.action is NoteAction.RELEASE]
        assert [n.timestamp for n in releases] == [480]

    def test_notes_in_range(self, song):
        reader = MidiReader(song)
        assert [n.timestamp for n in reader.get_notes_in_range(100, 480)] == [120]

    def test_tracks(self, song):
        reader = MidiReader(song)
        assert reader.get_tracks() == [
            TrackInfo(0, 'Conductor', None),
            TrackInfo(1, 'Piano', 'Grand'),
            TrackInfo(2, None, None),
        ]

    def test_channels_default_missing_bank_and_program(self, song, caplog):
        reader = MidiReader(song)
        with caplog.at_level(logging.ERROR, logger="midi2roll.midi_reader"):
            channels = reader.get_channels()
        assert channels == [
            ChannelInfo(1, 0, bank=2, program=5),
            ChannelInfo(1, 1, bank=0, program=0),
            ChannelInfo(2, 0, bank=0, program=0),
        ]
        assert any("has no MIDI program set" in r.getMessage() for r in caplog.records)

    def test_second_tempo_replaces_first(self, midi_file_factory, caplog):
        path = midi_file_factory([[
            mido.MetaMessage('set_tempo', tempo=500000),
            mido.MetaMessage('set_tempo', tempo=400000, time=960),
        ]])
        with caplog.at_level(logging.WARNING, logger="midi2roll.midi_reader"):
            reader = MidiReader(path)
        assert reader.tempo == 400000
        assert any("Tempo changes are not supported" in r.getMessage() for r in caplog.records)

    def test_missing_tempo(self, midi_file_factory):
        path = midi_file_factory([[mido.Message('note_on', note=60, velocity=1)]])
        assert MidiReader(path).tempo is None

    def test_timecode_division_has_no_time_base(self, tmp_path):
        header = b'MThd' + struct.pack('>IhhH', 6, 0, 1, 0xE728)
        track = b'MTrk' + struct.pack('>I', 4) + b'\x00\xff\x2f\x00'
        path = tmp_path / 'smpte.mid'
        path.write_bytes(header + track)
        reader = MidiReader(str(path))
        assert reader.time_base is None
        assert reader.get_notes() == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(MidiReadError):
            MidiReader(str(tmp_path / 'nope.mid'))

    def test_not_a_midi_file(self, tmp_path):
        path = tmp_path / 'junk.mid'
        path.write_bytes(b'not a midi file at all')
        with pytest.raises(MidiReadError):
            MidiReader(str(path))
