import logging

import mido
import pytest


@pytest.fixture
def midi_file_factory(tmp_path):
    """Builds MIDI files from lists of mido messages, one list per track (delta times)."""

    def _make(tracks, ticks_per_beat=480, filename="song.mid", midi_type=1):
        mid = mido.MidiFile(type=midi_type, ticks_per_beat=ticks_per_beat)
        for messages in tracks:
            track = mido.MidiTrack()
            track.extend(messages)
            mid.tracks.append(track)
        path = tmp_path / filename
        mid.save(str(path))
        return str(path)

    return _make


@pytest.fixture
def restore_logging():
    """Puts the root logger back the way it was after a test reconfigures logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    package_level = logging.getLogger("midi2roll").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("midi2roll").setLevel(package_level)
