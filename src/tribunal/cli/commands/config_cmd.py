"""CLI commands for inspecting Tribunal configuration.

Supported sub-commands::

    tribunal config show [--core]

Protocol parameters come from ``TRIBUNAL_*`` environment variables (or a
``.env`` file) layered over the defaults in ``ProtocolConfig``.
"""

from __future__ import annotations

import argparse

from ...core.config import get_config, get_protocol_config
from ..output import output_result

# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``config`` command tree."""
    config_parser = subparsers.add_parser(
        "config",
        help="Inspect protocol and process configuration",
    )
    config_sub = config_parser.add_subparsers(
        dest="config_command",
        required=True,
        metavar="SUBCOMMAND",
    )

    # tribunal config show [--core]
    show_p = config_sub.add_parser(
        "show",
        help="Show the effective protocol configuration",
    )
    show_p.add_argument(
        "--core",
        action="store_true",
        help="Also show logging and output settings",
    )
    show_p.set_defaults(func=cmd_config_show)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def cmd_config_show(args: argparse.Namespace) -> int:
    """Display the protocol configuration, with derived values."""
    protocol = get_protocol_config()
    data = {
        "protocol": protocol.model_dump(mode="json"),
        "derived": {
            "platform_share_bps": protocol.platform_share_bps,
            "half_reputation": protocol.half_reputation,
        },
    }
    if args.core:
        data["core"] = get_config().model_dump(mode="json")
    output_result(data, args.output)
    return 0
