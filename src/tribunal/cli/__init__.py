# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Tribunal CLI - quotes, configuration and scripted simulations."""

from .main import app, main

__all__ = ["main", "app"]
