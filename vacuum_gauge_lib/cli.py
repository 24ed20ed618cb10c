"""Command line front end: pick a port and mode, then record pressure readings.

Examples:
    gauge-poll --list-ports
    gauge-poll --port /dev/ttyUSB0 --mode 1
    gauge-poll --port COM3 --mode 3 --interval 2000 --duration 60 --csv run.csv
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from serial.tools import list_ports

from data_store import ChartStore, LogSink, SinkRecorder
from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.engine import GaugeEngine
from vacuum_gauge_lib.errors import ConfigError, GaugeError, PortUnavailable
from vacuum_gauge_lib.models import EngineConfig

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def setup_logging(level: str, log_path: Optional[str] = None) -> None:
    """Configure the diagnostic stream (stderr, optionally a file too)."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gauge-poll",
        description="Acquire pressure readings from a vacuum gauge over a serial port",
    )
    parser.add_argument("--list-ports", action="store_true",
                        help="List available serial ports and exit")
    parser.add_argument("--port", default=os.getenv("GAUGE_PORT"),
                        help="Serial port (default: $GAUGE_PORT)")
    parser.add_argument("--baud", type=int, default=protocol.DEFAULT_BAUD,
                        help=f"Baud rate (default: {protocol.DEFAULT_BAUD})")
    parser.add_argument("--mode", type=int,
                        help="1 - interval 100ms, 2 - interval 1s, 3 - manual interval")
    parser.add_argument("--interval", type=int,
                        help=f"Manual interval in ms for mode 3 "
                             f"(at least {protocol.MANUAL_MIN_INTERVAL_MS})")
    parser.add_argument("--read-timeout", type=int, default=protocol.DEFAULT_READ_TIMEOUT_MS,
                        help=f"Serial read timeout in ms (default: {protocol.DEFAULT_READ_TIMEOUT_MS})")
    parser.add_argument("--idle-timeout", type=int,
                        help="Stop with an error if a fixed-interval gauge is silent this many ms")
    parser.add_argument("--log-file", default="output.txt",
                        help="Measurement log, appended to (default: output.txt)")
    parser.add_argument("--csv",
                        help="Export all samples to this CSV file on exit")
    parser.add_argument("--duration", type=float,
                        help="Stop after this many seconds (default: run until Ctrl-C)")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        help="Diagnostic log level (default: $LOG_LEVEL or INFO)")
    parser.add_argument("--diag-file",
                        help="Also write the diagnostic log to this file")
    return parser


def print_ports() -> None:
    ports = list_ports.comports()
    if not ports:
        print("No serial ports found")
    for port in ports:
        print(f"Available ports: {port.device}  {port.description}")


def is_interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _ask_int(question: str) -> int:
    answer = input(question).strip()
    try:
        return int(answer)
    except ValueError:
        raise ConfigError(f"Expected a whole number, got {answer!r}") from None


def prompt_missing(args: argparse.Namespace) -> None:
    """Ask the operator for whatever the command line left out.

    Asks for the port first, then shows the mode menu, then asks for the
    interval if manual mode was chosen. A bare number is taken as a COM port
    number on Windows.

    Raises:
        ConfigError: If a numeric answer is not a number
    """
    if not args.port:
        print_ports()
        answer = input("Enter the port: ").strip()
        if answer.isdigit() and os.name == "nt":
            answer = f"COM{answer}"
        args.port = answer or None

    if args.mode is None:
        print("Select mode:\n"
              "1 - interval 100ms\n"
              "2 - interval 1s\n"
              f"3 - manual interval (at least {protocol.MANUAL_MIN_INTERVAL_MS} ms)")
        args.mode = _ask_int("Mode: ")

    if args.mode == 3 and args.interval is None:
        args.interval = _ask_int("Enter interval in milliseconds: ")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.diag_file)

    if args.list_ports:
        print_ports()
        return EXIT_OK

    incomplete = args.mode is None or not args.port or (args.mode == 3 and args.interval is None)
    if incomplete and is_interactive():
        try:
            prompt_missing(args)
        except (ConfigError, EOFError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_CONFIG

    if args.mode is None:
        print("Error: --mode is required (1, 2 or 3)", file=sys.stderr)
        return EXIT_CONFIG

    # Validate everything before the port is touched
    try:
        config = EngineConfig.from_selection(
            args.mode,
            args.interval,
            read_timeout_ms=args.read_timeout,
            idle_timeout_ms=args.idle_timeout,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    if not args.port:
        print("Error: --port is required (see --list-ports)", file=sys.stderr)
        return EXIT_CONFIG

    engine = GaugeEngine(config)
    chart = ChartStore()
    recorder = SinkRecorder(engine.channel, chart=chart, log=LogSink(args.log_file))

    try:
        engine.start(port=args.port, baud=args.baud)
    except PortUnavailable as e:
        print(f"Port could not be found: {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"Port: {args.port} is open")
    recorder.start()
    exit_code = EXIT_OK

    try:
        engine.wait(timeout=args.duration)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping...")
    except GaugeError as e:
        logger.error(f"Acquisition failed: {e}")
        exit_code = EXIT_FAILURE
    finally:
        engine.stop()
        recorder.stop()

    if args.csv:
        chart.export_csv(args.csv)

    summary = chart.summary()
    print(f"Port: {args.port} is closed")
    print(f"Recorded {summary['count']} readings ({engine.stats.malformed} malformed lines)")
    if summary["count"]:
        print(f"Pressure min {summary['min']:.4E}, max {summary['max']:.4E}, "
              f"mean {summary['mean']:.4E} mBar over {summary['duration_s']:.1f} s")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
