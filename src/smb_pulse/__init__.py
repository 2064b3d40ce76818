# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB Pulse
---------

The insight core of a small-business finance tracking dashboard. It reads
the transactions, invoices and tax payments recorded by the dashboard and
derives a short, prioritized list of rule-based observations ("expenses are
up 30%", "2 invoices are overdue", ...), which users can dismiss.

Main capabilities:
- a pure, rule-based insight engine with configurable thresholds,
- a persistent dismissed-insight store (SQLite key-value slot),
- dashboard helpers (badge count, filters, statistics),
- CSV loading of records and TOML configuration,
- a command-line interface.

Version: 0.1.0

Usage:
    python -m smb_pulse.cli --help
"""

__all__ = ["engine", "dismissals", "insights_service", "records"]

__version__ = "0.1.0"
