import mido
import pytest

from midi2roll.midi_events import NoteInterval
from midi2roll.midi_generator import MidiWriter, write_intervals


def read_back(path):
    """Returns (ticks_per_beat, notes, messages) with notes as (start, duration, pitch, velocity)."""
    mid = mido.MidiFile(path)
    messages = []
    for track in mid.tracks:
        timestamp = 0
        for msg in track:
            timestamp += msg.time
            messages.append((timestamp, msg))

    # Releases sort before presses at the same tick so touching notes pair up.
    def sort_key(item):
        timestamp, msg = item
        is_press = msg.type == 'note_on' and msg.velocity > 0
        return timestamp, is_press

    open_notes = {}
    notes = []
    for timestamp, msg in sorted((m for m in messages if m[1].type in ('note_on', 'note_off')), key=sort_key):
        if msg.type == 'note_on' and msg.velocity > 0:
            open_notes[msg.note] = (timestamp, msg.velocity)
        else:
            start, velocity = open_notes.pop(msg.note)
            notes.append((start, timestamp - start, msg.note, velocity))
    return mid.ticks_per_beat, sorted(notes), [msg for _, msg in messages]


class TestWriteIntervals:
    @pytest.fixture
    def written(self, tmp_path):
        path = str(tmp_path / 'out.roll.mid')
        intervals = [
            NoteInterval(0, 480, 60),
            NoteInterval(480, 240, 64),
            NoteInterval(480, 480, 60),
        ]
        success, message = write_intervals(path, intervals, time_base=480, tempo=600000,
                                            program=1, bank=0, track_name='song.mid')
        assert success, message
        return path

    def test_notes_round_trip_in_source_ticks(self, written):
        ticks_per_beat, notes, _ = read_back(written)
        assert ticks_per_beat == 480
        assert notes == [(0, 480, 60, 90), (480, 240, 64, 90), (480, 480, 60, 90)]

    def test_header_events(self, written):
        _, _, messages = read_back(written)
        tempos = [m.tempo for m in messages if m.type == 'set_tempo']
        programs = [m.program for m in messages if m.type == 'program_change']
        banks = [m.value for m in messages if m.type == 'control_change' and m.control == 0]
        names = [m.name for m in messages if m.type == 'track_name']
        assert tempos == [600000]
        assert programs == [1]
        assert banks == [0]
        assert 'song.mid' in names

    def test_notes_are_on_channel_zero(self, written):
        _, _, messages = read_back(written)
        assert {m.channel for m in messages if m.type in ('note_on', 'note_off')} == {0}

    def test_format_one_with_tempo_track(self, written):
        mid = mido.MidiFile(written)
        assert mid.type == 1
        assert len(mid.tracks) == 2


def test_zero_length_intervals_are_skipped(tmp_path):
    writer = MidiWriter(time_base=96)
    writer.set_tempo(0, 0, 500000)
    writer.add_intervals([NoteInterval(0, 0, 60), NoteInterval(10, 20, 62)])
    assert writer.skipped_notes == 1
    path = str(tmp_path / 'skip.mid')
    assert writer.save_file(path)
    _, notes, _ = read_back(path)
    assert notes == [(10, 20, 62, 90)]


def test_save_creates_missing_directories(tmp_path):
    path = tmp_path / 'rolls' / 'nested' / 'out.mid'
    success, _ = write_intervals(str(path), [NoteInterval(0, 10, 60)], time_base=480)
    assert success
    assert path.exists()


def test_save_failure_is_reported(tmp_path):
    blocker = tmp_path / 'file'
    blocker.write_text('x')
    success, message = write_intervals(str(blocker / 'out.mid'), [], time_base=480)
    assert not success
    assert "Can't save to disk" in message
