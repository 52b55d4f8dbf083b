"""
Organized application state with validation and clear ownership.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from midi2roll.app_config import (
    DEFAULT_MIDI_TEMPO,
    DEFAULT_OUTPUT_BANK,
    DEFAULT_OUTPUT_PROGRAM,
    DEFAULT_OUTPUT_SUFFIX,
    DEFAULT_OUTPUT_VELOCITY,
    FUDGE_FACTOR_DIVISOR,
    MIDI_PITCH_MAX,
    ROLL_HIGHEST_PITCH,
    ROLL_LOWEST_PITCH,
    RollLayout,
)
from midi2roll.selection import ChannelSelector


class ConfigError(Exception):
    """Exception raised when configuration is invalid or cannot be loaded."""
    pass


@dataclass
class RollConfig:
    """Roll layout and press/release resolution settings."""

    lowest_pitch: int = ROLL_LOWEST_PITCH
    highest_pitch: int = ROLL_HIGHEST_PITCH

    # Fudge factor is time_base // fudge_divisor unless given in ticks
    fudge_divisor: int = FUDGE_FACTOR_DIVISOR
    fudge_factor_ticks: Optional[int] = None

    def validate(self) -> List[str]:
        """Validate roll configuration and return error messages."""
        errors = []

        if not 0 <= self.lowest_pitch <= MIDI_PITCH_MAX:
            errors.append(f"Lowest pitch {self.lowest_pitch} must be between 0 and {MIDI_PITCH_MAX}")

        if not 0 <= self.highest_pitch <= MIDI_PITCH_MAX:
            errors.append(f"Highest pitch {self.highest_pitch} must be between 0 and {MIDI_PITCH_MAX}")

        if self.lowest_pitch > self.highest_pitch:
            errors.append("Lowest pitch cannot be above highest pitch")

        if self.fudge_divisor < 1:
            errors.append(f"Fudge divisor {self.fudge_divisor} must be at least 1")

        if self.fudge_factor_ticks is not None and self.fudge_factor_ticks < 0:
            errors.append(f"Fudge factor {self.fudge_factor_ticks} ticks must not be negative")

        return errors

    def layout(self) -> RollLayout:
        return RollLayout(lowest_pitch=self.lowest_pitch, highest_pitch=self.highest_pitch)

    def fudge_factor_for(self, time_base: int) -> int:
        if self.fudge_factor_ticks is not None:
            return self.fudge_factor_ticks
        return time_base // self.fudge_divisor


@dataclass
class MidiConfig:
    """All MIDI output settings."""

    # Used when the source file carries no tempo (microseconds per beat)
    default_tempo: int = DEFAULT_MIDI_TEMPO

    velocity: int = DEFAULT_OUTPUT_VELOCITY
    program: int = DEFAULT_OUTPUT_PROGRAM
    bank: int = DEFAULT_OUTPUT_BANK

    # Output times are divided by this (2 halves the roll length)
    time_divisor: float = 1.0

    def validate(self) -> List[str]:
        """Validate MIDI configuration."""
        errors = []

        if self.default_tempo <= 0:
            errors.append(f"Default tempo {self.default_tempo} must be positive")

        if not 1 <= self.velocity <= 127:
            errors.append(f"Velocity {self.velocity} must be between 1 and 127")

        if not 0 <= self.program <= 127:
            errors.append(f"Program {self.program} must be between 0 and 127")

        if not 0 <= self.bank <= 127:
            errors.append(f"Bank {self.bank} must be between 0 and 127")

        if not self.time_divisor > 0:
            errors.append(f"Time divisor {self.time_divisor} must be positive")

        return errors


@dataclass
class RunConfig:
    """What to read, what to select and where to write."""

    input_path: str = ""
    output_path: Optional[str] = None
    selectors: List[ChannelSelector] = field(default_factory=list)
    list_only: bool = False

    def validate(self) -> List[str]:
        errors = []

        if not self.input_path:
            errors.append("Missing input argument")

        return errors

    def resolved_output_path(self) -> str:
        """Output path, defaulting to the input path with the roll suffix."""
        if self.output_path:
            return self.output_path
        base = self.input_path
        for ext in ('.mid', '.midi', '.MID', '.MIDI'):
            if base.endswith(ext):
                base = base[:-len(ext)]
                break
        return base + DEFAULT_OUTPUT_SUFFIX


@dataclass
class AppState:
    """
    Organized application state with clear boundaries and validation.
    """

    roll: RollConfig = field(default_factory=RollConfig)
    midi: MidiConfig = field(default_factory=MidiConfig)
    run: RunConfig = field(default_factory=RunConfig)

    # Path of the INI file the settings came from, if any
    config_path_used: Optional[str] = None

    def validate(self) -> List[str]:
        """
        Comprehensive validation of all state groups.

        Returns:
            List of validation error messages (empty if valid)
        """
        all_errors = []

        all_errors.extend([f"Roll: {err}" for err in self.roll.validate()])
        all_errors.extend([f"MIDI: {err}" for err in self.midi.validate()])
        all_errors.extend([f"Run: {err}" for err in self.run.validate()])

        all_errors.extend(self._validate_cross_group())

        return all_errors

    def _validate_cross_group(self) -> List[str]:
        """Validate relationships between different state groups."""
        errors = []

        if self.run.input_path and self.run.resolved_output_path() == self.run.input_path:
            errors.append(f"Output path {self.run.input_path} would overwrite the input file")

        return errors

    def raise_if_invalid(self) -> None:
        errors = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of current state for debugging."""
        return {
            "roll": {
                "lowest_pitch": self.roll.lowest_pitch,
                "highest_pitch": self.roll.highest_pitch,
                "fudge_divisor": self.roll.fudge_divisor,
                "fudge_factor_ticks": self.roll.fudge_factor_ticks,
            },
            "midi": {
                "velocity": self.midi.velocity,
                "program": self.midi.program,
                "time_divisor": self.midi.time_divisor,
            },
            "run": {
                "input": self.run.input_path,
                "output": self.run.resolved_output_path() if self.run.input_path else None,
                "selectors": [str(s) for s in self.run.selectors],
            },
            "config_path_used": self.config_path_used,
        }
