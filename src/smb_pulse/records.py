# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Record types and lenient field readers for SMB Pulse.

The dashboard keeps three kinds of records in memory (transactions,
invoices, tax payments) plus the business settings. Callers may hand them
to the engine either as the dataclasses below or as plain mappings loaded
from JSON/CSV; the engine reads both through `read_field`.

Coercion rules
--------------
- `to_amount` turns anything that is not a finite number into 0.0.
- `parse_date` returns None for anything that is not an ISO date (or a
  date/datetime object). Callers exclude such records from date windows
  instead of treating them as a zero/epoch date.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal, Optional

TransactionType = Literal["income", "expense"]
InvoiceStatus = Literal["unpaid", "paid", "void"]

DEFAULT_CATEGORY = "Uncategorized"


@dataclass(frozen=True)
class Transaction:
    """A single income or expense line."""

    id: str
    type: TransactionType
    amount: float
    date: str
    category: str = DEFAULT_CATEGORY
    name: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    """
    An invoice sent to a client.

    `due` is the due date as an ISO string. Older data only carries the
    issue `date`, which is then used as the due date.
    """

    id: str
    status: InvoiceStatus
    amount: float
    due: Optional[str]
    client: str = ""
    date: Optional[str] = None


@dataclass(frozen=True)
class TaxPayment:
    """An estimated or final tax payment that has been logged."""

    id: str
    amount: float
    date: str
    type: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    """
    Business settings consumed by the insight rules.

    Attributes
    ----------
    currency_symbol:
        Symbol prefixed to every formatted amount (e.g. "$", "€").
    tax_rate:
        Effective federal income tax rate, in percent.
    state_tax_rate:
        State income tax rate, in percent.
    """

    currency_symbol: str = "$"
    tax_rate: float = 0.0
    state_tax_rate: float = 0.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Settings":
        """
        Build Settings from a mapping, accepting snake_case or camelCase keys.

        Missing or malformed rates become 0.0; a missing or empty currency
        symbol falls back to "$".
        """
        if data is None:
            return cls()

        symbol = read_field(data, "currency_symbol", "currencySymbol")
        return cls(
            currency_symbol=str(symbol) if symbol else "$",
            tax_rate=to_amount(read_field(data, "tax_rate", "taxRate")),
            state_tax_rate=to_amount(
                read_field(data, "state_tax_rate", "stateTaxRate")
            ),
        )


def coerce_settings(settings: Any) -> Settings:
    """Return a Settings instance whatever the caller handed over."""
    if isinstance(settings, Settings):
        # Rates may still have been built from untrusted values.
        return Settings(
            currency_symbol=str(settings.currency_symbol or "$"),
            tax_rate=to_amount(settings.tax_rate),
            state_tax_rate=to_amount(settings.state_tax_rate),
        )
    if isinstance(settings, Mapping):
        return Settings.from_mapping(settings)
    if settings is None:
        return Settings()
    return Settings(
        currency_symbol=str(read_field(settings, "currency_symbol") or "$"),
        tax_rate=to_amount(read_field(settings, "tax_rate")),
        state_tax_rate=to_amount(read_field(settings, "state_tax_rate")),
    )


# ---------------------------------------------------------------------------
# Field readers
# ---------------------------------------------------------------------------


def read_field(record: Any, *names: str, default: Any = None) -> Any:
    """
    Read the first present, non-None field among `names`.

    Works on mappings (key lookup) and on any other object (attribute
    lookup). Objects that have none of the fields yield `default`.
    """
    for name in names:
        if isinstance(record, Mapping):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None:
            return value
    return default


def to_amount(value: Any) -> float:
    """
    Convert a raw amount to float, mapping anything unusable to 0.0.

    Accepts ints, floats and numeric strings (surrounding whitespace is
    ignored). Booleans, NaN, infinities and non-numeric values become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0

    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0

    if not math.isfinite(number):
        return 0.0
    return number


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a calendar date, returning None when the value is not a date.

    Accepted inputs:
    - `date` / `datetime` objects (including pandas Timestamps),
    - ISO strings, either a plain date ("2025-01-31") or a full timestamp
      ("2025-01-31T10:00:00Z").
    """
    if isinstance(value, datetime):
        if value != value:  # NaT
            return None
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def transaction_type(record: Any) -> str:
    """Return the normalized transaction type ('income', 'expense' or '')."""
    raw = read_field(record, "type", default="")
    return str(raw).strip().lower()


def transaction_category(record: Any) -> str:
    raw = read_field(record, "category")
    if raw is None:
        return DEFAULT_CATEGORY
    text = str(raw).strip()
    return text or DEFAULT_CATEGORY


def invoice_due_date(record: Any) -> Optional[date]:
    """Due date of an invoice, falling back to its issue date."""
    return parse_date(read_field(record, "due", "due_date", "dueDate", "date"))
