# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Tribunal - stake-weighted, reputation-adjusted arbitration.

An accused subject is backed by defender stake and challenged by a bonded
challenger. Staked jurors vote with reputation-weighted power, the case
resolves into a binary outcome, and the pooled stake is redistributed to
the winning side, correct voters and the treasury.

Layout:
  tribunal.core     Configuration, logging and the exception hierarchy
  tribunal.engine   Ledgers, reputation math, cases, resolution and claims
  tribunal.cli      ``tribunal`` command line (quotes and simulations)
"""

__version__ = "0.1.0"
