# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Insight generation engine for SMB Pulse.

This module turns the dashboard records (transactions, invoices, tax
payments) and the business settings into a short, prioritized list of
human-readable insights.

The engine is a pure function:

    generate_insights(transactions, invoices, tax_payments, settings)

It performs no I/O, keeps no state between calls and never mutates its
inputs. Dismissed insights are filtered by the caller (see
dismissals.py and insights_service.py).

Rules
-----
Rules are evaluated in a fixed order and each one appends at most one
Insight:

1. cash-flow health       (category "cashflow")
2. spending trend         (category "spending")
3. category concentration (category "patterns")
4. invoice health         (category "invoices")
5. tax funding            (category "tax")

The concatenated list is then sorted by descending priority; ties keep
rule order. Priorities are banded by severity (high 9-10, medium 5-8,
low 2-4).

Thresholds
----------
Every threshold is a module-level constant and the default of the
matching InsightPolicy field. A policy can be overridden per call or via
the [insights] table of the configuration file.

Insight ids
-----------
Ids combine the kind of finding with a time bucket (current month, or the
earliest overdue due date for invoices). They stay stable while the
condition holds within that bucket, so a dismissal persists across
re-generation until the bucket changes.

Malformed input
---------------
Non-numeric amounts count as 0, missing categories as "Uncategorized",
and records with unparseable dates are left out of every date window.
No rule raises on malformed records.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Literal, Optional

import pandas as pd

from .periods import Period, calendar_year, month_bucket, resolve_today, trailing_window
from .records import (
    Settings,
    coerce_settings,
    invoice_due_date,
    parse_date,
    read_field,
    to_amount,
    transaction_category,
    transaction_type,
)

logger = logging.getLogger(__name__)

Severity = Literal["high", "medium", "low"]
Category = Literal["cashflow", "spending", "invoices", "tax", "patterns"]

SEVERITY_ORDER: dict[str, int] = {"high": 3, "medium": 2, "low": 1}
CATEGORIES: tuple[str, ...] = ("cashflow", "spending", "invoices", "tax", "patterns")

# ---------------------------------------------------------------------------
# Default thresholds
# ---------------------------------------------------------------------------

CASHFLOW_WINDOW_DAYS = 30
CASHFLOW_MIN_TRANSACTIONS = 5
LOW_SAVINGS_RATE = 0.10
HEALTHY_SAVINGS_RATE = 0.10

TREND_WINDOW_DAYS = 30
SPENDING_RISE_THRESHOLD = 0.25
SPENDING_FALL_THRESHOLD = 0.25

CONCENTRATION_WINDOW_DAYS = 30
CONCENTRATION_MIN_EXPENSES = 5
CONCENTRATION_THRESHOLD = 0.45

OVERDUE_GRACE_DAYS = 1
UNPAID_VOLUME_THRESHOLD = 5

TAX_UNDERFUNDED_RATIO = 0.60
TAX_ON_TRACK_RATIO = 0.80
TAX_CHECK_START_MONTH = 3


@dataclass(frozen=True)
class InsightPolicy:
    """
    Thresholds used by the insight rules.

    Ratios are fractions (0.25 means 25%). Window lengths are in days.

    Attributes
    ----------
    cashflow_window_days, cashflow_min_transactions:
        Cash flow is computed over the trailing window, or over all
        records when the window holds fewer than the minimum. The rule is
        silent when even all records are fewer than the minimum.
    low_savings_rate, healthy_savings_rate:
        Net/income below `low_savings_rate` is flagged; at or above
        `healthy_savings_rate` a positive finding is emitted.
    trend_window_days, spending_rise_threshold, spending_fall_threshold:
        Expense change between the last window and the one before it.
    concentration_window_days, concentration_min_expenses,
    concentration_threshold:
        Share of the largest expense category in the trailing window.
    overdue_grace_days, unpaid_volume_threshold:
        Unpaid invoices due more than `overdue_grace_days` ago are overdue;
        without overdue invoices, `unpaid_volume_threshold` unpaid invoices
        trigger a reminder.
    tax_underfunded_ratio, tax_on_track_ratio, tax_check_start_month:
        Funded ratio bounds; underfunding is only reported from
        `tax_check_start_month` (1-12) onwards.
    """

    cashflow_window_days: int = CASHFLOW_WINDOW_DAYS
    cashflow_min_transactions: int = CASHFLOW_MIN_TRANSACTIONS
    low_savings_rate: float = LOW_SAVINGS_RATE
    healthy_savings_rate: float = HEALTHY_SAVINGS_RATE

    trend_window_days: int = TREND_WINDOW_DAYS
    spending_rise_threshold: float = SPENDING_RISE_THRESHOLD
    spending_fall_threshold: float = SPENDING_FALL_THRESHOLD

    concentration_window_days: int = CONCENTRATION_WINDOW_DAYS
    concentration_min_expenses: int = CONCENTRATION_MIN_EXPENSES
    concentration_threshold: float = CONCENTRATION_THRESHOLD

    overdue_grace_days: int = OVERDUE_GRACE_DAYS
    unpaid_volume_threshold: int = UNPAID_VOLUME_THRESHOLD

    tax_underfunded_ratio: float = TAX_UNDERFUNDED_RATIO
    tax_on_track_ratio: float = TAX_ON_TRACK_RATIO
    tax_check_start_month: int = TAX_CHECK_START_MONTH


DEFAULT_POLICY = InsightPolicy()


@dataclass(frozen=True)
class Insight:
    """
    A single rule-derived financial observation.

    Attributes
    ----------
    id:
        Deterministic identifier, used as the dismissal key.
    severity:
        'high', 'medium' or 'low'.
    category:
        One of CATEGORIES.
    title, message:
        Short headline and a sentence carrying the computed numbers.
    priority:
        1-10, higher first.
    detail:
        Optional recommendation.
    actionable:
        True when the finding calls for a concrete follow-up.
    """

    id: str
    severity: Severity
    category: Category
    title: str
    message: str
    priority: int
    detail: Optional[str] = None
    actionable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def format_money(amount: float, currency_symbol: str = "$") -> str:
    """Format an amount as '-$1,234.50' (sign, symbol, two decimals)."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency_symbol}{abs(amount):,.2f}"


# ---------------------------------------------------------------------------
# Input normalization
# ---------------------------------------------------------------------------

_TX_COLUMNS = ["type", "amount", "category", "date", "undated"]


def _is_undated(record: Any) -> bool:
    """True when the record has no date at all, as opposed to a malformed one."""
    value = read_field(record, "date")
    return value is None or (isinstance(value, str) and not value.strip())


def _as_records(value: Any) -> list[Any]:
    """Materialize a collection of records; anything else is empty."""
    if value is None or isinstance(value, (str, bytes, Mapping)):
        return []
    if not isinstance(value, Iterable):
        return []
    return list(value)


def _transactions_frame(transactions: list[Any]) -> pd.DataFrame:
    """
    Build a normalized DataFrame of transactions.

    Columns: type (str), amount (float), category (str), date (date or None)
    and undated (bool, no date field at all).
    """
    rows = [
        {
            "type": transaction_type(tx),
            "amount": to_amount(read_field(tx, "amount")),
            "category": transaction_category(tx),
            "date": parse_date(read_field(tx, "date")),
            "undated": _is_undated(tx),
        }
        for tx in transactions
    ]
    frame = pd.DataFrame(rows, columns=_TX_COLUMNS)
    frame["amount"] = frame["amount"].astype(float)
    frame["undated"] = frame["undated"].astype(bool)
    return frame


def _in_period(frame: pd.DataFrame, period: Period) -> pd.Series:
    """Boolean mask of rows dated within `period` (undated rows excluded)."""
    return frame["date"].map(period.contains).astype(bool)


def _total(frame: pd.DataFrame, tx_type: str) -> float:
    return float(frame.loc[frame["type"] == tx_type, "amount"].sum())


@dataclass(frozen=True)
class _RuleInput:
    transactions: pd.DataFrame
    invoices: list[Any]
    tax_payments: list[Any]
    settings: Settings
    today: date
    policy: InsightPolicy
    bucket: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bucket", month_bucket(self.today))

    def money(self, amount: float) -> str:
        return format_money(amount, self.settings.currency_symbol)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _cashflow_rule(ctx: _RuleInput) -> Optional[Insight]:
    policy = ctx.policy
    frame = ctx.transactions

    window = trailing_window(ctx.today, policy.cashflow_window_days)
    recent = frame.loc[_in_period(frame, window)]
    if len(recent) >= policy.cashflow_min_transactions:
        used = recent
        scope = f"over the last {policy.cashflow_window_days} days"
    else:
        used = frame
        scope = "across all records"

    if len(used) < policy.cashflow_min_transactions:
        return None

    income = _total(used, "income")
    expenses = _total(used, "expense")
    net = income - expenses

    if net < 0:
        return Insight(
            id=f"cashflow_negative:{ctx.bucket}",
            severity="high",
            category="cashflow",
            title="Negative cash flow",
            message=(
                f"You're spending more than you earn "
                f"({ctx.money(net)} net {scope})."
            ),
            priority=10,
            detail=(
                "Consider reducing your biggest expense category or "
                "increasing income inflows."
            ),
            actionable=True,
        )

    if income <= 0:
        return None

    savings_rate = net / income
    if savings_rate < policy.low_savings_rate:
        return Insight(
            id=f"cashflow_low_savings:{ctx.bucket}",
            severity="medium",
            category="cashflow",
            title="Low savings rate",
            message=(
                f"Net profit is only about {round(savings_rate * 100)}% "
                f"of income {scope}."
            ),
            priority=6,
            detail="Aim for 15-25% if possible, depending on your business.",
            actionable=True,
        )

    if savings_rate >= policy.healthy_savings_rate:
        return Insight(
            id=f"cashflow_healthy:{ctx.bucket}",
            severity="low",
            category="cashflow",
            title="Healthy cash flow",
            message=(
                f"You're net positive by {ctx.money(net)} {scope} "
                f"({round(savings_rate * 100)}% of income)."
            ),
            priority=2,
        )

    return None


def _spending_trend_rule(ctx: _RuleInput) -> Optional[Insight]:
    policy = ctx.policy
    days = policy.trend_window_days
    frame = ctx.transactions
    expenses = frame.loc[frame["type"] == "expense"]

    current = trailing_window(ctx.today, days)
    previous = trailing_window(ctx.today, days, offset_days=days)

    spent_now = float(expenses.loc[_in_period(expenses, current), "amount"].sum())
    spent_before = float(expenses.loc[_in_period(expenses, previous), "amount"].sum())

    if spent_before <= 0:
        return None

    change = (spent_now - spent_before) / spent_before
    pct = round(abs(change) * 100)
    amounts = f"{ctx.money(spent_now)} vs {ctx.money(spent_before)}"

    if change >= policy.spending_rise_threshold:
        return Insight(
            id=f"spending_up:{ctx.bucket}",
            severity="medium",
            category="spending",
            title="Expenses rising",
            message=(
                f"Expenses are up ~{pct}% vs the previous {days} days ({amounts})."
            ),
            priority=7,
            detail="Check if any category or vendor spiked unexpectedly.",
            actionable=True,
        )

    if change <= -policy.spending_fall_threshold:
        return Insight(
            id=f"spending_down:{ctx.bucket}",
            severity="low",
            category="spending",
            title="Expenses improving",
            message=(
                f"Expenses are down ~{pct}% vs the previous {days} days ({amounts})."
            ),
            priority=3,
        )

    return None


def _category_concentration_rule(ctx: _RuleInput) -> Optional[Insight]:
    policy = ctx.policy
    frame = ctx.transactions
    window = trailing_window(ctx.today, policy.concentration_window_days)

    expenses = frame.loc[(frame["type"] == "expense") & _in_period(frame, window)]
    if len(expenses) < policy.concentration_min_expenses:
        return None

    total = float(expenses["amount"].sum())
    if total <= 0:
        return None

    by_category = (
        expenses.groupby("category")["amount"].sum().sort_values(
            ascending=False, kind="stable"
        )
    )
    top_category = str(by_category.index[0])
    share = float(by_category.iloc[0]) / total

    if share <= policy.concentration_threshold:
        return None

    return Insight(
        id=f"category_concentration:{top_category}:{ctx.bucket}",
        severity="low",
        category="patterns",
        title="One category dominates spending",
        message=(
            f'"{top_category}" is about {round(share * 100)}% of your expenses '
            f"over the last {policy.concentration_window_days} days "
            f"({ctx.money(float(by_category.iloc[0]))} of {ctx.money(total)})."
        ),
        priority=4,
        detail="If expected (rent/inventory), ignore. Otherwise review it.",
    )


def _invoice_rule(ctx: _RuleInput) -> Optional[Insight]:
    policy = ctx.policy
    cutoff = ctx.today - timedelta(days=policy.overdue_grace_days)

    unpaid = [
        inv
        for inv in ctx.invoices
        if str(read_field(inv, "status", default="")).strip().lower() == "unpaid"
    ]

    overdue_amount = 0.0
    overdue_dues: list[date] = []
    for inv in unpaid:
        due = invoice_due_date(inv)
        if due is None or due >= cutoff:
            continue
        overdue_dues.append(due)
        overdue_amount += to_amount(read_field(inv, "amount"))

    if overdue_dues:
        count = len(overdue_dues)
        earliest = min(overdue_dues)
        noun = "invoice is" if count == 1 else "invoices are"
        return Insight(
            id=f"invoices_overdue:{earliest.isoformat()}",
            severity="high",
            category="invoices",
            title="Overdue invoices",
            message=(
                f"{count} unpaid {noun} overdue, "
                f"totalling {ctx.money(overdue_amount)}."
            ),
            priority=9,
            detail=(
                f"The oldest was due on {earliest.isoformat()}. Follow up with "
                "clients and consider adding reminders."
            ),
            actionable=True,
        )

    if len(unpaid) >= policy.unpaid_volume_threshold:
        unpaid_amount = sum(to_amount(read_field(inv, "amount")) for inv in unpaid)
        return Insight(
            id=f"invoices_unpaid:{ctx.bucket}",
            severity="medium",
            category="invoices",
            title="Many unpaid invoices",
            message=(
                f"{len(unpaid)} invoices are still unpaid "
                f"({ctx.money(unpaid_amount)} outstanding)."
            ),
            priority=5,
            detail="None are overdue yet, but a quick reminder can speed up payment.",
        )

    return None


def _tax_rule(ctx: _RuleInput) -> Optional[Insight]:
    policy = ctx.policy
    settings = ctx.settings
    year = calendar_year(ctx.today)

    # Records without any date count toward the year; malformed dates do not.
    frame = ctx.transactions
    in_year = _in_period(frame, year) | frame["undated"]
    ytd_income = _total(frame.loc[in_year], "income")
    combined_rate = settings.tax_rate + settings.state_tax_rate

    if ytd_income <= 0 or combined_rate <= 0:
        return None

    paid = sum(
        to_amount(read_field(payment, "amount"))
        for payment in ctx.tax_payments
        if _is_undated(payment)
        or year.contains(parse_date(read_field(payment, "date")))
    )
    estimated = ytd_income * combined_rate / 100
    funded = paid / estimated
    funded_pct = round(funded * 100)

    if (
        funded < policy.tax_underfunded_ratio
        and ctx.today.month >= policy.tax_check_start_month
    ):
        return Insight(
            id=f"tax_underfunded:{ctx.bucket}",
            severity="medium",
            category="tax",
            title="Tax payments may be low",
            message=(
                f"Estimated tax for {ctx.today.year} so far is "
                f"{ctx.money(estimated)}, but only {ctx.money(paid)} has been "
                f"paid ({funded_pct}% funded)."
            ),
            priority=8,
            detail=(
                f"At a combined rate of {combined_rate:g}%, consider setting "
                "aside a consistent share of every income payment."
            ),
            actionable=True,
        )

    if funded >= policy.tax_on_track_ratio and paid > 0:
        return Insight(
            id=f"tax_on_track:{ctx.bucket}",
            severity="low",
            category="tax",
            title="Tax payments on track",
            message=(
                f"Tax payments of {ctx.money(paid)} cover {funded_pct}% of the "
                f"estimated {ctx.money(estimated)} for {ctx.today.year}."
            ),
            priority=2,
        )

    return None


RULES: tuple[tuple[str, Callable[[_RuleInput], Optional[Insight]]], ...] = (
    ("cashflow", _cashflow_rule),
    ("spending_trend", _spending_trend_rule),
    ("category_concentration", _category_concentration_rule),
    ("invoices", _invoice_rule),
    ("tax", _tax_rule),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def generate_insights(
    transactions: Any,
    invoices: Any,
    tax_payments: Any,
    settings: Any,
    *,
    today: Optional[date] = None,
    policy: Optional[InsightPolicy] = None,
) -> list[Insight]:
    """
    Run every rule and return the resulting insights, highest priority first.

    Parameters
    ----------
    transactions, invoices, tax_payments:
        Collections of records, either dataclasses from records.py or
        mappings with the same field names. None counts as empty.
    settings:
        Settings instance or mapping (currency symbol and tax rates).
    today:
        Reference date for every window; defaults to the current date.
    policy:
        Thresholds; defaults to DEFAULT_POLICY.

    Returns
    -------
    list[Insight]
        At most one insight per rule, sorted by descending priority. Ties
        keep rule evaluation order.
    """
    ctx = _RuleInput(
        transactions=_transactions_frame(_as_records(transactions)),
        invoices=_as_records(invoices),
        tax_payments=_as_records(tax_payments),
        settings=coerce_settings(settings),
        today=resolve_today(today),
        policy=policy or DEFAULT_POLICY,
    )

    found: list[Insight] = []
    for name, rule in RULES:
        insight = rule(ctx)
        if insight is None:
            continue
        logger.debug("Rule %s produced insight %s", name, insight.id)
        found.append(insight)

    return sorted(found, key=lambda insight: insight.priority, reverse=True)
