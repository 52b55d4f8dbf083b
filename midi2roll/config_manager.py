"""
Configuration management for midi2roll settings.

Handles loading and saving of per-song settings using INI files. A song
``tune.mid`` may carry a sidecar ``tune.ini`` holding its roll layout, MIDI
output settings and track selectors, so a roll can be regenerated without
retyping the command line.

Sections:
- [Roll]: lowest_pitch, highest_pitch, fudge_divisor, fudge_factor_ticks
- [Midi]: default_tempo, velocity, program, bank, time_divisor
- [Selectors]: tracks (whitespace separated selectors, e.g. ``1,0 2,1-12``)
"""
import configparser
import logging
import os

from midi2roll.core.app_state import AppState, ConfigError
from midi2roll.selection import parse_track_selectors


class ConfigManager:
    """Handles INI file operations for application state."""

    def __init__(self, app_state: AppState):
        self.app_state = app_state

    def _get_ini_path(self, midi_filepath: str) -> str:
        """Generates the INI filepath based on the MIDI filepath."""
        if not midi_filepath:
            return ""
        normalized_path = os.path.normpath(midi_filepath)
        base, _ = os.path.splitext(normalized_path)
        return f"{base}.ini"

    def load_config(self, config_filepath: str) -> bool:
        """
        Load configuration from an INI file into the application state.

        Returns:
            True if the file was loaded, False if it does not exist.

        Raises:
            ConfigError: If the file exists but cannot be parsed.
        """
        logging.info(f"[CONFIG-LOAD] Attempting to load config from: {config_filepath}")
        if not config_filepath:
            logging.warning("load_config called with an empty config_filepath.")
            return False

        if not os.path.exists(config_filepath):
            logging.info(f"[CONFIG-LOAD] INI file not found at: {config_filepath}")
            return False

        config = configparser.ConfigParser()
        try:
            config.read(config_filepath, encoding='utf-8')

            if config.has_section('Roll'):
                roll_data = config['Roll']
                roll = self.app_state.roll
                roll.lowest_pitch = roll_data.getint('lowest_pitch', roll.lowest_pitch)
                roll.highest_pitch = roll_data.getint('highest_pitch', roll.highest_pitch)
                roll.fudge_divisor = roll_data.getint('fudge_divisor', roll.fudge_divisor)
                fudge_ticks_str = roll_data.get('fudge_factor_ticks', '').strip()
                if fudge_ticks_str:
                    roll.fudge_factor_ticks = int(fudge_ticks_str)

            if config.has_section('Midi'):
                midi_data = config['Midi']
                midi = self.app_state.midi
                midi.default_tempo = midi_data.getint('default_tempo', midi.default_tempo)
                midi.velocity = midi_data.getint('velocity', midi.velocity)
                midi.program = midi_data.getint('program', midi.program)
                midi.bank = midi_data.getint('bank', midi.bank)
                midi.time_divisor = midi_data.getfloat('time_divisor', midi.time_divisor)

            if config.has_section('Selectors'):
                tracks = config['Selectors'].get('tracks', '')
                self.app_state.run.selectors = parse_track_selectors(tracks.split())
                logging.debug(f"[CONFIG-LOAD] Selectors: {tracks.split()}")
        except (configparser.Error, ValueError) as e:
            # SelectorError is a ValueError
            raise ConfigError(f"Error loading config from {config_filepath}: {e}") from e

        self.app_state.config_path_used = config_filepath
        logging.info(f"[CONFIG-LOAD] [OK] Config loaded from: {config_filepath}")
        return True

    def save_config(self, config_filepath: str) -> bool:
        """Save current configuration to an INI file."""
        if not config_filepath:
            logging.warning("save_config called with an empty config_filepath.")
            return False
        logging.info(f"[CONFIG-SAVE] Saving config to INI path: {config_filepath}")

        roll = self.app_state.roll
        midi = self.app_state.midi

        config = configparser.ConfigParser()
        config['Roll'] = {
            'lowest_pitch': str(roll.lowest_pitch),
            'highest_pitch': str(roll.highest_pitch),
            'fudge_divisor': str(roll.fudge_divisor),
            'fudge_factor_ticks': str(roll.fudge_factor_ticks) if roll.fudge_factor_ticks is not None else '',
        }
        config['Midi'] = {
            'default_tempo': str(midi.default_tempo),
            'velocity': str(midi.velocity),
            'program': str(midi.program),
            'bank': str(midi.bank),
            'time_divisor': str(midi.time_divisor),
        }
        config['Selectors'] = {
            'tracks': " ".join(str(s) for s in self.app_state.run.selectors),
        }

        try:
            with open(config_filepath, 'w', encoding='utf-8') as f:
                config.write(f)
        except OSError as e:
            logging.error(f"Error saving config to {config_filepath}: {e}")
            return False

        logging.info(f"[CONFIG-SAVE] [OK] Config saved to: {config_filepath}")
        return True
