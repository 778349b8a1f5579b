# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands.

Handles JSON vs plain text output based on core config.
"""

from __future__ import annotations

import json
import sys
from typing import Any

from ..core.config import get_config


def output_result(data: dict[str, Any], output_format: str | None = None) -> None:
    """Print a command result in the configured output format.

    If output is "json", pretty-print the full result.
    In text mode top-level scalars print as ``key: value`` lines and nested
    values fall back to JSON.
    """
    fmt = output_format or get_config().output_format

    if fmt == "json":
        print(json.dumps(data, indent=2, default=str))
        return

    for key, value in data.items():
        if isinstance(value, (dict, list)):
            print(f"{key}: {json.dumps(value, default=str)}")
        else:
            print(f"{key}: {value}")


def output_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)
