"""
Command-Line Entry Point
========================
Builds a cutter location surface and prints its summary.

Why is this file needed?
------------------------
It acts as the orchestrator for diagnostics runs. It:
1. Parses the sampling parameters.
2. Sets up logging (console + optional file).
3. Builds the surface and reports vertex/edge counts.

Usage:
    $ python -m clsurface --far 1.0 --min-sampling 0.25 -v
"""
from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from clsurface.config import DEFAULT_FAR, DEFAULT_MAX_DEPTH, DEFAULT_MIN_SAMPLING
from clsurface.exceptions import ConfigurationError, ResourceLimitError
from clsurface.logging_config import setup_logging
from clsurface.model.surface import build_surface

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="clsurface", description="Build an adaptive cutter location surface.")
    parser.add_argument("--far", type=float, default=DEFAULT_FAR, help="half-extent of the bounding square")
    parser.add_argument("--min-sampling", type=float, default=DEFAULT_MIN_SAMPLING, help="maximum edge length")
    parser.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="maximum subdivision passes")
    parser.add_argument("--deadline", type=float, default=None, help="wall-clock budget in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--log-file", default=None, help="also write the log to this file")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)

    try:
        surface = build_surface(
            far=args.far,
            min_sampling=args.min_sampling,
            max_depth=args.max_depth,
            deadline=args.deadline,
        )
    except (ConfigurationError, ResourceLimitError) as e:
        logger.error(f"Could not build surface: {e}")
        return 2

    print(surface)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
