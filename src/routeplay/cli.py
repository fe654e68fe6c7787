#!/usr/bin/env python3
"""
Route playback tool.
This script loads a recorded route (GPX file, JSON file or JSON URL), replays
it as a moving vehicle while printing live telemetry, and generates an
interactive HTML map of the vehicle's progress.

Requirements:
    pip install gpxpy folium requests

"""

from typing import Optional
import webbrowser
import argparse
import json
import logging
import sys
import os
import threading
from gpxpy import gpx
import requests

from . import __version__
from . import visualization
from .config import RouteplayConfig
from .engine import PlaybackEngine, PlaybackState, TelemetrySnapshot
from .file_utils import generate_output_filename
from .metrics import collect_metrics, log_metrics
from .route import Route
from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler

# Configure logging
logger = logging.getLogger("routeplay")


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    defaults = RouteplayConfig()
    parser = argparse.ArgumentParser(
        description="Replay a recorded route as a moving vehicle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "filename",
        type=str,
        nargs="?",
        help="GPX or JSON route file to replay",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Fetch the JSON route payload from this URL instead of a file",
    )
    parser.add_argument(
        "--rate-ms",
        type=int,
        default=defaults.rate_ms,
        help=(
            f"Milliseconds between samples, {defaults.min_rate_ms}-{defaults.max_rate_ms} "
            f"(default: {defaults.rate_ms})"
        ),
    )
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Pause after this many samples (default: play to the end)",
    )
    parser.add_argument(
        "--fast",
        action="store_true",
        help="Replay on a virtual clock without waiting between samples",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output HTML map file (default: auto-generated based on input filename)",
    )
    parser.add_argument(
        "--bbox-buffer",
        type=float,
        default=defaults.bbox_buffer,
        help=f"Map padding around route in meters (default: {defaults.bbox_buffer:g})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults.timeout,
        help=f"Network timeout in seconds for --url (default: {defaults.timeout})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=defaults.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=f"Set logging level (default: {defaults.log_level})",
    )
    parser.add_argument(
        "--no-open",
        action="store_true",
        help="Don't automatically open the HTML file in browser",
    )
    parser.add_argument(
        "--no-map",
        action="store_true",
        help="Don't generate the HTML map",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Output structured metrics after processing",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"routeplay {__version__}",
    )
    return parser


def determine_output_filename(input_name: str, output_arg: Optional[str]) -> str:
    """
    Determine the output filename to use.

    Args:
        input_name: Path to the input route file, or the route URL
        output_arg: Value from --output argument (None if not specified)

    Returns:
        Output filename to use

    Raises:
        RuntimeError: If auto-generation fails
        ValueError: If constructed filename would be illegal
    """
    if output_arg is not None:
        return output_arg

    try:
        return generate_output_filename(input_name)
    except (RuntimeError, ValueError) as e:
        logger.error(f"Failed to generate output filename: {e}")
        raise


def open_file_in_browser(filename: str) -> None:
    """
    Open the specified file in the default browser.

    Args:
        filename: Path to the file to open
    """
    abs_path = os.path.abspath(filename)
    try:
        webbrowser.open(f"file://{abs_path}")
        logger.debug(f"Opening {abs_path} in your default browser...")
    except webbrowser.Error as e:
        logger.warning(f"Could not automatically open browser: {e}")
        logger.warning(f"Please manually open {abs_path}")


def setup_logging(args: argparse.Namespace) -> None:
    """Setup logging configuration."""
    level = getattr(logging, args.log_level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    # Configure the root logger so all modules inherit the configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress overly verbose third-party logging
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def load_route(args: argparse.Namespace) -> Route:
    """
    Load the route named on the command line.

    Raises:
        FileNotFoundError, PermissionError, json.JSONDecodeError,
        gpxpy.gpx.GPXException, requests.exceptions.RequestException
    """
    if args.url:
        return Route.from_url(args.url, timeout=args.timeout)
    return Route.from_file(args.filename)


def format_snapshot(snapshot: TelemetrySnapshot, total: int) -> str:
    """One-line telemetry readout, e.g. for printing on every tick."""
    if snapshot.position is None:
        return "[0/0] no position"

    position = snapshot.position
    return (
        f"[{snapshot.cursor + 1}/{total}] "
        f"{position.latitude:.6f}, {position.longitude:.6f}  "
        f"{snapshot.speed_kmh:6.1f} km/h  "
        f"ETA {snapshot.eta_display:>11}  "
        f"{snapshot.progress_pct:5.1f}%  "
        f"{snapshot.state}"
    )


def run_playback(
    engine: PlaybackEngine, scheduler: Scheduler, max_ticks: Optional[int] = None
) -> None:
    """
    Play the route until it finishes, max_ticks samples have been advanced,
    or the user interrupts.

    With a ManualScheduler the virtual clock is stepped from tick to tick;
    otherwise this waits on the wall clock.
    """

    stopped = threading.Event()

    def on_change(snapshot: TelemetrySnapshot) -> None:
        if snapshot.state != PlaybackState.PLAYING:
            stopped.set()
        elif max_ticks is not None and snapshot.cursor >= max_ticks:
            # Runs under the engine lock, so the tick just scheduled is cancelled
            engine.pause()

    unsubscribe = engine.subscribe(on_change)
    try:
        engine.play()
        if isinstance(scheduler, ManualScheduler):
            while engine.playing:
                due_ms = scheduler.next_due_ms()
                if due_ms is None:
                    break
                scheduler.advance(due_ms - scheduler.now_ms)
        else:
            while engine.playing:
                stopped.wait(0.2)
    except KeyboardInterrupt:
        logger.info("Playback interrupted")
    finally:
        engine.pause()
        unsubscribe()


def main():
    """
    Parses command-line arguments, loads the route, replays it
    and generates an interactive map.
    """
    parser = create_argument_parser()
    args = parser.parse_args()

    if not args.filename and not args.url:
        parser.print_help()
        sys.exit(1)

    setup_logging(args)

    config = RouteplayConfig()
    if not config.min_rate_ms <= args.rate_ms <= config.max_rate_ms:
        logger.error(
            f"--rate-ms must be between {config.min_rate_ms} and {config.max_rate_ms}, "
            f"got {args.rate_ms}"
        )
        sys.exit(1)

    source = args.url or args.filename

    try:
        route = load_route(args)
    except FileNotFoundError:
        logger.error(f"Route file not found: {source}")
        sys.exit(1)
    except PermissionError:
        logger.error(f"Cannot read route file (permission denied): {source}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON route file: {e}")
        sys.exit(1)
    except gpx.GPXException as e:
        logger.error(f"Invalid GPX file: {e}")
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        logger.error(f"Unable to load route data from {source}: {e}")
        sys.exit(1)

    if not route:
        logger.error(f"No route samples to replay in {source}")
        sys.exit(1)

    logger.info(f"Loaded route with {len(route)} samples")
    logger.info(f"Total route distance: {route.total_distance() / 1000:.2f} km")

    metrics = collect_metrics(route)

    scheduler = ManualScheduler() if args.fast else ThreadingScheduler()
    engine = PlaybackEngine(route, scheduler, rate_ms=args.rate_ms)
    engine.subscribe(lambda snapshot: print(format_snapshot(snapshot, len(route))))

    print(format_snapshot(engine.snapshot(), len(route)))
    run_playback(engine, scheduler, args.max_ticks)

    log_metrics(metrics, args)

    if args.no_map:
        return

    try:
        output_filename = determine_output_filename(source, args.output)
        logger.debug(f"Output filename: {output_filename}")
    except (RuntimeError, ValueError):
        sys.exit(1)

    try:
        visualization.create_route_map(engine, output_filename, args)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to create map: {e}")
        sys.exit(1)

    if not args.no_open:
        open_file_in_browser(output_filename)


if __name__ == "__main__":
    main()
