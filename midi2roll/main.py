"""
Command line entry point for midi2roll.

Reads a MIDI file, reports what is in it, resolves the selected tracks and
channels into roll note intervals and writes them out as a simplified MIDI
file.

Usage:
    midi2roll song.mid                    # every track and channel
    midi2roll song.mid 1,0 2,1-12 -o out.mid
    midi2roll song.mid 1,0 /2             # halve all times
    midi2roll song.mid --list             # report only
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from midi2roll import __version__
from midi2roll.config_manager import ConfigManager
from midi2roll.core.app_state import AppState, ConfigError
from midi2roll.core.logging_config import LoggingConfig
from midi2roll.midi_generator import write_intervals
from midi2roll.midi_reader import MidiReadError, MidiReader
from midi2roll.resolver import PressReleaseResolver, ResolverError, scale_intervals
from midi2roll.selection import SelectionFilter, SelectorError, parse_track_selectors

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="midi2roll",
        description="Convert MIDI note events into player-piano roll note intervals",
    )
    parser.add_argument("input", help="Input MIDI file")
    parser.add_argument("specs", nargs="*", metavar="SPEC",
                        help="Track selector 'TRACK,CHANNEL[+N|-N]' or '/DIVISOR' time divisor")
    parser.add_argument("-o", "--output", help="Output MIDI file (default: <input>.roll.mid)")
    parser.add_argument("--config", help="Settings INI file (default: <input>.ini if present)")
    parser.add_argument("--save-config", metavar="INI", help="Write the effective settings to an INI file")
    parser.add_argument("--time-divisor", type=float, help="Divide all output times by this factor")
    parser.add_argument("--list", action="store_true", dest="list_only",
                        help="Only report tracks, channels and note counts")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", action="store_true", help="Also write a log file for this run")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_configuration(args: argparse.Namespace) -> AppState:
    """
    Builds the application state from the INI file (if any) and the command line.

    Command line values win over INI values.

    Raises:
        ConfigError: On malformed selectors, divisors or INI content.
    """
    app_state = AppState()
    config_manager = ConfigManager(app_state)

    if args.config:
        if not config_manager.load_config(args.config):
            raise ConfigError(f"Config file not found: {args.config}")
    else:
        config_manager.load_config(config_manager._get_ini_path(args.input))

    app_state.run.input_path = args.input
    app_state.run.list_only = args.list_only
    if args.output:
        app_state.run.output_path = args.output

    selector_args = []
    for spec in args.specs:
        if spec.startswith('/'):
            try:
                app_state.midi.time_divisor = float(spec[1:])
            except ValueError as e:
                raise ConfigError(f"time divisor parse error: {e}") from e
        else:
            selector_args.append(spec)
    if selector_args:
        try:
            app_state.run.selectors = parse_track_selectors(selector_args)
        except SelectorError as e:
            raise ConfigError(str(e)) from e

    if args.time_divisor is not None:
        app_state.midi.time_divisor = args.time_divisor

    app_state.raise_if_invalid()
    return app_state


def report_song(reader: MidiReader) -> None:
    """Logs track names, instruments and channel programs."""
    for track in reader.get_tracks():
        if track.name is not None:
            logger.info(f"Track {track.track} Name: {track.name}")
        if track.instrument is not None:
            logger.info(f"Track {track.track} Instrument: {track.instrument}")
    for channel in reader.get_channels():
        logger.info(f"Track {channel.track} channel {channel.channel}: "
                    f"bank {channel.bank}, program {channel.program}")


def report_press_counts(selection: SelectionFilter) -> None:
    for (track, channel), count in selection.sorted_press_counts():
        logger.info(f"track {track}, channel {channel}: {count}")


def convert(app_state: AppState) -> int:
    """Runs one read, resolve and write pass. Returns a process exit code."""
    run = app_state.run
    try:
        reader = MidiReader(run.input_path)
    except MidiReadError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    report_song(reader)
    selection = SelectionFilter(run.selectors)

    if run.list_only:
        for event in reader.get_notes():
            selection(event)
        report_press_counts(selection)
        return EXIT_OK

    if reader.time_base is None:
        logger.error("Cannot resolve notes of a timecode-based MIDI file")
        return EXIT_FAILURE

    resolver = PressReleaseResolver(
        layout=app_state.roll.layout(),
        fudge_factor_ticks=app_state.roll.fudge_factor_for(reader.time_base),
    )
    try:
        collector = resolver.run(reader.get_notes(), selection)
    except ResolverError as e:
        logger.error(f"Resolution aborted: {e}")
        return EXIT_FAILURE

    report_press_counts(selection)
    for kind, count in sorted(resolver.counts_by_kind().items(), key=lambda item: item[0].value):
        logger.warning(f"{count} {kind.value.replace('_', ' ')} diagnostics")

    intervals = scale_intervals(collector.sorted_by_start(), app_state.midi.time_divisor)
    logger.info(f"{len(intervals)} roll notes on {len({n.pitch for n in intervals})} holes")

    output_path = run.resolved_output_path()
    success, message = write_intervals(
        output_path,
        intervals,
        time_base=reader.time_base,
        tempo=reader.tempo or app_state.midi.default_tempo,
        velocity=app_state.midi.velocity,
        program=app_state.midi.program,
        bank=app_state.midi.bank,
        track_name=os.path.basename(run.input_path),
    )
    if not success:
        logger.error(message)
        return EXIT_FAILURE
    logger.info(message)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    LoggingConfig.setup_logging(
        log_to_file=args.log_file,
        log_to_console=True,
        log_level=getattr(logging, args.log_level),
    )

    try:
        app_state = parse_configuration(args)
    except ConfigError as e:
        logger.error(str(e))
        return EXIT_USAGE
    logger.debug(f"State: {app_state.get_state_summary()}")

    if args.save_config:
        if not ConfigManager(app_state).save_config(args.save_config):
            return EXIT_FAILURE

    return convert(app_state)


if __name__ == "__main__":
    sys.exit(main())
