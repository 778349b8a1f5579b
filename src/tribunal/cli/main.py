#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""
Tribunal CLI - stake-weighted arbitration engine tooling.

Commands:
  tribunal config show               Show the effective protocol configuration
  tribunal quote <calculation>       Evaluate a bond, power, withdrawal or fee formula
  tribunal simulate <scenario.json>  Run a scripted scenario on an in-memory engine
"""

from __future__ import annotations

import argparse
import logging
import sys

from ..core.exceptions import TribunalException
from ..core.logging import configure_logging
from .commands import COMMAND_MODULES
from .output import output_error

logger = logging.getLogger(__name__)


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tribunal",
        description="Stake-weighted, reputation-adjusted arbitration engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tribunal config show                              Effective protocol parameters
  tribunal quote min-bond --reputation 2500         Bond for a low-reputation challenger
  tribunal quote fees --pool 1000 --outcome challenger_wins
  tribunal simulate scenario.json                   Replay a scenario step by step
        """,
    )
    parser.add_argument(
        "--output",
        "-o",
        choices=["json", "text"],
        default=None,
        help="Output format (default: TRIBUNAL_OUTPUT or json)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: TRIBUNAL_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)

    try:
        return args.func(args)
    except TribunalException as e:
        logger.debug(f"Command failed: {e.to_dict()}")
        output_error(f"{type(e).__name__}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
