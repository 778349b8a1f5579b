"""CLI command modules for Tribunal.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import config_cmd, quote, simulate
from .config_cmd import cmd_config_show
from .quote import cmd_quote_fees, cmd_quote_min_bond, cmd_quote_multiplier, cmd_quote_voting_power, cmd_quote_withdrawal
from .simulate import cmd_simulate, run_scenario

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    config_cmd,
    quote,
    simulate,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_config_show",
    "cmd_quote_fees",
    "cmd_quote_min_bond",
    "cmd_quote_multiplier",
    "cmd_quote_voting_power",
    "cmd_quote_withdrawal",
    "cmd_simulate",
    "run_scenario",
]
