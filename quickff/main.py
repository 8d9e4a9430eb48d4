"""Command line entry point for quickff."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from .config import LOG_LEVELS, load_config
from .invoker import Invoker
from .logging_setup import setup_logging
from .models import InvocationRequest, MemoryOutput, RequestError

logger = logging.getLogger(__name__)

__all__ = ["run"]

STDIN_MARKER = "-"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Everything after INPUT is handed to ffmpeg, so options for quickff itself
    must come first.
    """
    parser = argparse.ArgumentParser(
        prog="quickff",
        description="Pipe a file or stdin through ffmpeg",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Remux to a file
  quickff -o out.mp4 input.mkv -c copy -f mp4

  # Read stdin, write a fragmented mp4 to stdout
  cat input.mkv | quickff - -c copy -f mp4 > out.mp4

  # Show ffmpeg's own output
  quickff -v -o out.wav input.mp3 -f wav
        """,
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output file (default: write to stdout)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log the command line and ffmpeg's stderr",
    )
    parser.add_argument(
        "--ffmpeg",
        dest="executable",
        help="Path to the ffmpeg executable",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file (default: $XDG_CONFIG_HOME/quickff/config.toml)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        help="Console log level (default: from config, INFO)",
    )
    parser.add_argument("input", help="Input file, or - to read stdin")
    parser.add_argument(
        "args", nargs=argparse.REMAINDER, help="Arguments passed on to ffmpeg"
    )
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Run one ffmpeg invocation from the command line.

    Returns:
        Exit code: ffmpeg's return code, or 1 if it could not be run.
    """
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (ValueError, OSError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or config.log.log_level, config.log.log_file)

    ff_args = args.args
    if ff_args and ff_args[0] == "--":
        ff_args = ff_args[1:]

    if args.input == STDIN_MARKER:
        source = await asyncio.to_thread(sys.stdin.buffer.read)
    else:
        source = args.input

    invoker = Invoker(config.invoker)
    try:
        request = InvocationRequest.build(
            source,
            ff_args,
            args.output,
            verbose=args.verbose,
            executable_path=args.executable,
        )
        invocation = await invoker.start(request)
        result = await invocation.wait()
    except RequestError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Could not run ffmpeg: {e}")
        return 1

    if isinstance(request.output, MemoryOutput):
        sys.stdout.buffer.write(result)
        sys.stdout.buffer.flush()

    returncode = invocation.returncode
    if returncode:
        logger.error(f"ffmpeg exited with code {returncode}")
        return returncode if returncode > 0 else 1
    return 0


def run() -> NoReturn:
    """Entry point for the quickff command."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
