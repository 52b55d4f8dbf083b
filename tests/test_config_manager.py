import pytest

from midi2roll.config_manager import ConfigManager
from midi2roll.core.app_state import AppState, ConfigError, MidiConfig, RollConfig, RunConfig
from midi2roll.selection import ChannelSelector


class TestAppStateValidation:
    def test_defaults_only_miss_the_input(self):
        assert AppState().validate() == ["Run: Missing input argument"]

    def test_valid_state(self):
        state = AppState(run=RunConfig(input_path="song.mid"))
        assert state.validate() == []
        state.raise_if_invalid()

    def test_errors_are_prefixed_by_group(self):
        state = AppState(
            roll=RollConfig(lowest_pitch=90, highest_pitch=30),
            midi=MidiConfig(velocity=0, time_divisor=0),
            run=RunConfig(input_path="song.mid"),
        )
        errors = state.validate()
        assert "Roll: Lowest pitch cannot be above highest pitch" in errors
        assert any(e.startswith("MIDI: Velocity 0") for e in errors)
        assert any(e.startswith("MIDI: Time divisor") for e in errors)

    def test_output_must_not_overwrite_input(self):
        state = AppState(run=RunConfig(input_path="song.mid", output_path="song.mid"))
        with pytest.raises(ConfigError, match="overwrite"):
            state.raise_if_invalid()

    @pytest.mark.parametrize("input_path, expected", [
        ("song.mid", "song.roll.mid"),
        ("dir/song.MIDI", "dir/song.roll.mid"),
        ("song", "song.roll.mid"),
    ])
    def test_default_output_path(self, input_path, expected):
        assert RunConfig(input_path=input_path).resolved_output_path() == expected

    def test_fudge_factor(self):
        assert RollConfig().fudge_factor_for(480) == 160
        assert RollConfig(fudge_divisor=4).fudge_factor_for(480) == 120
        assert RollConfig(fudge_factor_ticks=5).fudge_factor_for(480) == 5

    def test_layout(self):
        layout = RollConfig(lowest_pitch=30, highest_pitch=40).layout()
        assert layout.hole_count == 11


class TestConfigManager:
    def test_ini_path_sits_next_to_the_song(self):
        manager = ConfigManager(AppState())
        assert manager._get_ini_path("rolls/song.mid") == "rolls/song.ini"
        assert manager._get_ini_path("") == ""

    def test_missing_file_leaves_defaults(self, tmp_path):
        state = AppState()
        assert not ConfigManager(state).load_config(str(tmp_path / "absent.ini"))
        assert state.config_path_used is None
        assert state.roll == RollConfig()

    def test_save_then_load(self, tmp_path):
        path = str(tmp_path / "song.ini")
        saved = AppState(
            roll=RollConfig(lowest_pitch=24, highest_pitch=96, fudge_factor_ticks=12),
            midi=MidiConfig(default_tempo=400000, velocity=100, program=3, bank=1, time_divisor=2.0),
            run=RunConfig(selectors=[ChannelSelector(1, 0), ChannelSelector(2, 1, -12)]),
        )
        assert ConfigManager(saved).save_config(path)

        loaded = AppState()
        assert ConfigManager(loaded).load_config(path)
        assert loaded.roll == saved.roll
        assert loaded.midi == saved.midi
        assert loaded.run.selectors == saved.run.selectors
        assert loaded.config_path_used == path

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        path = tmp_path / "song.ini"
        path.write_text("[Midi]\nvelocity = 64\n")
        state = AppState()
        ConfigManager(state).load_config(str(path))
        assert state.midi.velocity == 64
        assert state.midi.program == MidiConfig().program
        assert state.run.selectors == []

    @pytest.mark.parametrize("content", [
        "[Selectors]\ntracks = 1,0 2-1\n",
        "[Roll]\nlowest_pitch = low\n",
        "not an ini file",
    ])
    def test_malformed_file_raises(self, tmp_path, content):
        path = tmp_path / "bad.ini"
        path.write_text(content)
        with pytest.raises(ConfigError):
            ConfigManager(AppState()).load_config(str(path))

    def test_save_to_unwritable_location(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert not ConfigManager(AppState()).save_config(str(blocker / "song.ini"))
