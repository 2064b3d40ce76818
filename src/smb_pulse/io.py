# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SMB Pulse.

This module reads the dashboard records (transactions, invoices, tax
payments) from CSV files and returns them as lists of plain dictionaries
that the insight engine accepts directly.

Expected input formats
----------------------
Column names are case-insensitive and surrounding whitespace is ignored.

1) Transactions
       date, type, amount[, category, name, notes, id]

   ``name`` also accepts the aliases ``label`` and ``description``.

2) Invoices
       status, amount, due[, client, date, id]

   ``due_date`` / ``duedate`` are accepted as aliases for ``due``. Files
   without any due column must carry the issue ``date`` instead.

3) Tax payments
       date, amount[, type, note, id]

Values
------
Cells are kept as text: the engine applies its own lenient coercion
(non-numeric amounts count as 0, unparseable dates are ignored). Empty
cells become None. Rows without an ``id`` get a positional one such as
``tx_3``.

If a file does not contain the required columns, a clear ValueError is
raised.
"""

import os
from typing import Any, Union

import pandas as pd

PathLike = Union[str, "os.PathLike[str]"]

_ALIASES = {
    "due_date": "due",
    "duedate": "due",
    "label": "name",
    "description": "name",
}


def _read_csv(path: PathLike) -> pd.DataFrame:
    """Read a CSV file as text and normalize column names."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)

    df.columns = [c.lower().strip() for c in df.columns]
    cols = set(df.columns)

    # First alias found wins when several map to the same column.
    renames: dict[str, str] = {}
    for alias, target in _ALIASES.items():
        if alias in cols and target not in cols and target not in renames.values():
            renames[alias] = target
    if renames:
        df = df.rename(columns=renames)

    return df


def _require(df: pd.DataFrame, required: set[str], kind: str) -> None:
    missing = required.difference(df.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        raise ValueError(
            f"Invalid {kind} file: missing required column(s): {cols} "
            "(column names are case-insensitive)."
        )


def _to_records(df: pd.DataFrame, id_prefix: str) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for position, row in enumerate(df.to_dict(orient="records"), start=1):
        record = {
            str(key): (value.strip() or None) if isinstance(value, str) else value
            for key, value in row.items()
        }
        if not record.get("id"):
            record["id"] = f"{id_prefix}_{position}"
        records.append(record)
    return records


def read_transactions(path: PathLike) -> list[dict[str, Any]]:
    """
    Read transactions from a CSV file.

    Raises
    ------
    ValueError
        If the date, type or amount column is missing.
    """
    df = _read_csv(path)
    _require(df, {"date", "type", "amount"}, "transactions")
    return _to_records(df, "tx")


def read_invoices(path: PathLike) -> list[dict[str, Any]]:
    """
    Read invoices from a CSV file.

    Raises
    ------
    ValueError
        If status or amount is missing, or if neither a due column nor a
        date column is present.
    """
    df = _read_csv(path)
    _require(df, {"status", "amount"}, "invoices")
    if "due" not in df.columns and "date" not in df.columns:
        raise ValueError(
            "Invalid invoices file: expected a 'due' (or 'due_date') column, "
            "or at least an issue 'date' column."
        )
    return _to_records(df, "inv")


def read_tax_payments(path: PathLike) -> list[dict[str, Any]]:
    """
    Read tax payments from a CSV file.

    Raises
    ------
    ValueError
        If the date or amount column is missing.
    """
    df = _read_csv(path)
    _require(df, {"date", "amount"}, "tax payments")
    return _to_records(df, "tax")
