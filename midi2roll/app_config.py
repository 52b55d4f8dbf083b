"""
Application configuration constants and the piano-roll layout.

Defines global constants, default values, and the data class describing the
addressable hole range of the output roll. Everything that needs to know which
pitches can be punched into the roll goes through RollLayout.

Key Components:
- RollLayout: playable pitch range and pitch-to-hole mapping
- Note naming constants and helpers
- Resolution defaults (fudge factor divisor)
- MIDI output defaults (tempo, velocity, program)
"""
from dataclasses import dataclass

# --- General App Config ---
APP_NAME = "midi2roll"
LOG_DIR = "logs"
DEFAULT_OUTPUT_SUFFIX = ".roll.mid"

# --- Note Names ---
NOTE_NAMES_SHARP = ["A", "A♯", "B", "C", "C♯", "D", "D♯", "E", "F", "F♯", "G", "G♯"]
NOTE_NAMES_FLAT = ["A", "B♭", "B", "C", "D♭", "D", "E♭", "E", "F", "G♭", "G", "A♭"]

# MIDI pitch of A0, the first entry of the note name tables above.
MIDI_PITCH_A0 = 21
MIDI_PITCH_MAX = 127

# --- Roll Layout ---
# The roll reserves 80 consecutive holes for playable notes. Control holes
# (pedals etc.) live outside this range and are never produced from notes.
ROLL_HOLE_COUNT = 80
ROLL_LOWEST_PITCH = MIDI_PITCH_A0
ROLL_HIGHEST_PITCH = ROLL_LOWEST_PITCH + ROLL_HOLE_COUNT - 1  # E7

# --- Resolution ---
# Two presses on one hole closer together than a third of a beat are treated
# as the same gesture.
FUDGE_FACTOR_DIVISOR = 3

# --- MIDI Output ---
DEFAULT_MIDI_TEMPO = 500000  # microseconds per beat (120 BPM)
DEFAULT_OUTPUT_VELOCITY = 90
DEFAULT_OUTPUT_PROGRAM = 1
DEFAULT_OUTPUT_BANK = 0


def get_note_name(pitch: int, use_flats: bool = False) -> str:
    """Returns the full note name for a MIDI pitch, e.g. 60 -> 'C4', 21 -> 'A0'."""
    names = NOTE_NAMES_FLAT if use_flats else NOTE_NAMES_SHARP
    name = names[(pitch - MIDI_PITCH_A0) % 12]
    octave = pitch // 12 - 1
    return f"{name}{octave}"


@dataclass(frozen=True)
class RollLayout:
    """Addressable hole range of a piano roll."""
    lowest_pitch: int = ROLL_LOWEST_PITCH
    highest_pitch: int = ROLL_HIGHEST_PITCH

    def __post_init__(self):
        if self.lowest_pitch > self.highest_pitch:
            raise ValueError(
                f"Roll lowest pitch {self.lowest_pitch} is above highest pitch {self.highest_pitch}"
            )

    @property
    def hole_count(self) -> int:
        return self.highest_pitch - self.lowest_pitch + 1

    def contains(self, pitch: int) -> bool:
        """True if the pitch maps onto a playable hole (closed interval)."""
        return self.lowest_pitch <= pitch <= self.highest_pitch

    def hole_index(self, pitch: int) -> int:
        """
        Maps a resolved pitch to its hole index, 0 being the lowest playable hole.

        Raises:
            ValueError: If the pitch is outside the playable range.
        """
        if not self.contains(pitch):
            raise ValueError(
                f"Pitch {pitch} ({get_note_name(pitch)}) is outside roll range "
                f"{self.describe()}"
            )
        return pitch - self.lowest_pitch

    def describe(self) -> str:
        return (f"{get_note_name(self.lowest_pitch)}..{get_note_name(self.highest_pitch)} "
                f"({self.hole_count} holes)")


DEFAULT_ROLL_LAYOUT = RollLayout()

# --- Logging Configuration ---
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
