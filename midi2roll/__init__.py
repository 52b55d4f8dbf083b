"""
midi2roll: turn MIDI note streams into player-piano roll note intervals.
"""

__version__ = "0.1.0"
