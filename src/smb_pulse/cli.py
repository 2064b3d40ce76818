# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB Pulse.

This module wires together the main building blocks of SMB Pulse:

- global configuration (business settings, data files, storage, thresholds),
- CSV loading of transactions, invoices and tax payments,
- the insight engine,
- the dismissed-insight store,
- tabular views.

The CLI is intentionally thin: it does not implement any insight logic
itself. It loads the records listed in the configuration, runs the engine
and renders or updates the dismissal state depending on the subcommand.


Commands
--------

- ``list``:
    Show active insights (dismissed ones hidden unless ``--all``), with
    optional ``--category`` / ``--severity`` filters and ``--sort-by``.
    Output goes to the console and/or a CSV file depending on the display
    mode (``--display-mode`` overrides the configuration).

- ``count``:
    Print the number of active insights (the dashboard badge).

- ``stats``:
    Print total / active / dismissed counts, per severity and actionable.

- ``dismiss ID [ID ...]``:
    Hide one or more insights.

- ``restore ID``:
    Show a dismissed insight again.

- ``reset``:
    Forget every dismissal.


Global options
--------------

- ``--config PATH``: TOML configuration (default: smb_pulse_config.toml).
- ``--today YYYY-MM-DD``: evaluate the rules as of another date.
- ``--verbose``: debug logging.
- ``--version``: print the installed version and exit.
"""

import argparse
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .config import DISPLAY_MODES, AppConfig, load_app_config
from .db import KeyValueStorage, init_database
from .dismissals import DismissalStore
from .engine import CATEGORIES, SEVERITY_ORDER, generate_insights
from .insights_service import count_active_insights, filter_insights, summarize_insights
from .io import read_invoices, read_tax_payments, read_transactions
from .views import insights_to_dataframe, stats_to_dataframe

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m smb_pulse.cli",
        description=(
            "SMB Pulse - Finance tracking dashboard insights for SMBs. "
            "Reads transactions, invoices and tax payments, derives "
            "prioritized insights and manages dismissed ones."
        ),
    )

    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_pulse and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'smb_pulse_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--today",
        dest="today",
        help="Evaluate insights as of this date (YYYY-MM-DD) instead of today.",
    )
    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    subparsers = ap.add_subparsers(
        dest="command",
        metavar="command",
        help="One of: list, count, stats, dismiss, restore, reset.",
    )

    # ------------------------------------------------------------------
    # list
    # ------------------------------------------------------------------
    list_parser = subparsers.add_parser("list", help="Show active insights.")
    list_parser.add_argument(
        "--category",
        choices=list(CATEGORIES),
        help="Only show insights of this category.",
    )
    list_parser.add_argument(
        "--severity",
        choices=list(SEVERITY_ORDER),
        help="Only show insights of this severity.",
    )
    list_parser.add_argument(
        "--sort-by",
        dest="sort_by",
        choices=["priority", "severity"],
        default="priority",
        help="Sort order (default: priority).",
    )
    list_parser.add_argument(
        "--all",
        dest="include_dismissed",
        action="store_true",
        help="Include dismissed insights.",
    )
    list_parser.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=list(DISPLAY_MODES),
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints results to stdout, "
            "'csv' writes a CSV file only, "
            "'both' does both."
        ),
    )
    list_parser.add_argument(
        "--output",
        dest="output_dir",
        help=(
            "Output directory for the CSV file when display mode includes "
            "'csv'. If omitted, 'data/output' is used."
        ),
    )

    # ------------------------------------------------------------------
    # count / stats / reset
    # ------------------------------------------------------------------
    subparsers.add_parser("count", help="Print the number of active insights.")
    subparsers.add_parser("stats", help="Print insight statistics.")
    subparsers.add_parser("reset", help="Forget every dismissed insight.")

    # ------------------------------------------------------------------
    # dismiss / restore
    # ------------------------------------------------------------------
    dismiss_parser = subparsers.add_parser("dismiss", help="Hide insights by id.")
    dismiss_parser.add_argument("insight_ids", nargs="+", metavar="ID")

    restore_parser = subparsers.add_parser(
        "restore", help="Show a dismissed insight again."
    )
    restore_parser.add_argument("insight_id", metavar="ID")

    return ap


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _load_records(config: AppConfig) -> dict[str, list[dict[str, Any]]]:
    """
    Load the CSV record files listed in the configuration.

    Files that are not configured yield empty lists. A configured file that
    does not exist is a user error.
    """
    readers = {
        "transactions": (config.data.transactions, read_transactions),
        "invoices": (config.data.invoices, read_invoices),
        "tax_payments": (config.data.tax_payments, read_tax_payments),
    }

    records: dict[str, list[dict[str, Any]]] = {}
    for kind, (path, reader) in readers.items():
        if path is None:
            records[kind] = []
            continue
        if not path.is_file():
            raise SystemExit(f"Configured {kind} file not found: {path}")
        records[kind] = reader(path)
        logger.debug("Loaded %d %s from %s", len(records[kind]), kind, path)

    return records


def _handle_list(args, config, records, store, today) -> None:
    insights = generate_insights(
        records["transactions"],
        records["invoices"],
        records["tax_payments"],
        config.settings,
        today=today,
        policy=config.policy,
    )
    dismissed = set() if args.include_dismissed else store.get()
    selected = filter_insights(
        insights,
        dismissed=dismissed,
        category=args.category,
        severity=args.severity,
        sort_by=args.sort_by,
    )
    df = insights_to_dataframe(selected)

    display_mode = args.display_mode or config.display_mode

    if display_mode in {"table", "both"}:
        if df.empty:
            print("No insights to display.")
        else:
            print()
            print("=== Insights ===")
            columns = ["id", "severity", "priority_label", "title", "message"]
            print(df[columns].to_string(index=False))

    if display_mode in {"csv", "both"}:
        output_dir = Path(args.output_dir) if args.output_dir else Path("data/output")
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = output_dir / f"insights_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


def _handle_stats(config, records, store, today) -> None:
    insights = generate_insights(
        records["transactions"],
        records["invoices"],
        records["tax_payments"],
        config.settings,
        today=today,
        policy=config.policy,
    )
    stats = summarize_insights(insights, store.get())
    print(stats_to_dataframe(stats).to_string(index=False))


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB Pulse CLI.

    This function parses command-line arguments, loads the application
    configuration, opens the dismissal store and dispatches to the selected
    subcommand. Commands that need insights load the configured CSV files
    and run the engine as of --today (or the current date).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # --version: short-circuit and exit early.
    if args.version:
        print(f"smb_pulse version {__version__}")
        return

    if args.command is None:
        parser.error(
            "No command specified. "
            "Available commands are: list, count, stats, dismiss, restore, reset."
        )

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    today = _parse_optional_date(args.today)

    init_database(config.database)
    store = DismissalStore(KeyValueStorage(config.database), key=config.dismissed_key)

    # Commands that only touch the dismissal state.
    if args.command == "dismiss":
        for insight_id in args.insight_ids:
            store.add(insight_id)
        print(f"Dismissed {len(args.insight_ids)} insight(s).")
        return
    if args.command == "restore":
        store.discard(args.insight_id)
        print(f"Restored insight {args.insight_id}.")
        return
    if args.command == "reset":
        store.clear()
        print("All dismissed insights have been reset.")
        return

    try:
        records = _load_records(config)
    except ValueError as exc:
        raise SystemExit(f"Invalid data file: {exc}") from exc

    if args.command == "list":
        _handle_list(args, config, records, store, today)
    elif args.command == "count":
        print(
            count_active_insights(
                records["transactions"],
                records["invoices"],
                records["tax_payments"],
                config.settings,
                store,
                today=today,
                policy=config.policy,
            )
        )
    elif args.command == "stats":
        _handle_stats(config, records, store, today)


if __name__ == "__main__":
    main()
