from datetime import date, timedelta
from typing import Optional

import pytest

from smb_pulse.engine import (
    DEFAULT_POLICY,
    Insight,
    InsightPolicy,
    format_money,
    generate_insights,
)
from smb_pulse.records import Invoice, Settings, TaxPayment, Transaction

TODAY = date(2025, 6, 15)
NO_TAX = Settings(currency_symbol="$", tax_rate=0, state_tax_rate=0)


# Helpers
def tx(kind: str, amount, days_ago: int = 1, category: Optional[str] = None) -> dict:
    record = {
        "type": kind,
        "amount": amount,
        "date": (TODAY - timedelta(days=days_ago)).isoformat(),
    }
    if category is not None:
        record["category"] = category
    return record


def run(transactions=(), invoices=(), tax_payments=(), settings=NO_TAX, **kwargs):
    return generate_insights(
        list(transactions),
        list(invoices),
        list(tax_payments),
        settings,
        today=kwargs.pop("today", TODAY),
        **kwargs,
    )


def find(insights: list[Insight], kind: str) -> Optional[Insight]:
    """Return the insight whose id starts with `kind`, if any."""
    matches = [i for i in insights if i.id.split(":")[0] == kind]
    assert len(matches) <= 1
    return matches[0] if matches else None


def kinds(insights: list[Insight]) -> list[str]:
    return [i.id.split(":")[0] for i in insights]


# ---------------------------------------------------------------------------
# Cash flow
# ---------------------------------------------------------------------------


def test_negative_cash_flow_is_high_severity() -> None:
    transactions = [tx("income", 100)] + [tx("expense", 200) for _ in range(4)]

    insights = run(transactions)

    finding = find(insights, "cashflow_negative")
    assert finding is not None
    assert finding.severity == "high"
    assert finding.category == "cashflow"
    assert finding.actionable is True
    assert "-$700.00" in finding.message
    assert finding.id == "cashflow_negative:2025-06"


def test_low_savings_rate_is_medium() -> None:
    transactions = [tx("income", 1000)] + [tx("expense", 230) for _ in range(4)]

    finding = find(run(transactions), "cashflow_low_savings")

    assert finding is not None
    assert finding.severity == "medium"
    assert "8%" in finding.message


def test_healthy_cash_flow_is_positive_finding() -> None:
    transactions = [tx("income", 1000)] + [tx("expense", 50) for _ in range(4)]

    finding = find(run(transactions), "cashflow_healthy")

    assert finding is not None
    assert finding.severity == "low"
    assert "$800.00" in finding.message
    assert "80% of income" in finding.message


def test_cash_flow_needs_minimum_transaction_count() -> None:
    transactions = [tx("income", 100)] + [tx("expense", 200) for _ in range(3)]

    assert find(run(transactions), "cashflow_negative") is None


def test_cash_flow_falls_back_to_all_records_when_window_is_sparse() -> None:
    transactions = [
        tx("income", 100),
        tx("expense", 50),
        tx("expense", 50),
        tx("expense", 500, days_ago=90),
        tx("expense", 500, days_ago=120),
        tx("income", 10, days_ago=200),
    ]

    finding = find(run(transactions), "cashflow_negative")

    assert finding is not None
    assert "across all records" in finding.message
    assert "-$990.00" in finding.message


def test_cash_flow_uses_trailing_window_when_it_has_enough_records() -> None:
    recent = [tx("income", 1000)] + [tx("expense", 50) for _ in range(4)]
    old_losses = [tx("expense", 5000, days_ago=100)]

    insights = run(recent + old_losses)

    assert find(insights, "cashflow_negative") is None
    healthy = find(insights, "cashflow_healthy")
    assert healthy is not None
    assert "over the last 30 days" in healthy.message


# ---------------------------------------------------------------------------
# Spending trend
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "previous, current, expected",
    [
        (100, 130, "spending_up"),
        (100, 125, "spending_up"),
        (100, 124, None),
        (100, 75, "spending_down"),
        (100, 76, None),
        (0, 500, None),
    ],
)
def test_spending_trend_thresholds(previous, current, expected) -> None:
    transactions = [tx("expense", current, days_ago=5)]
    if previous:
        transactions.append(tx("expense", previous, days_ago=40))

    insights = run(transactions)
    found = [k for k in kinds(insights) if k.startswith("spending_")]

    assert found == ([expected] if expected else [])


def test_spending_increase_reports_percentage_change() -> None:
    transactions = [tx("expense", 130, days_ago=5), tx("expense", 100, days_ago=40)]

    finding = find(run(transactions), "spending_up")

    assert finding is not None
    assert finding.severity == "medium"
    assert finding.category == "spending"
    assert "~30%" in finding.message
    assert "$130.00 vs $100.00" in finding.message


def test_spending_windows_are_adjacent_thirty_day_blocks() -> None:
    transactions = [
        tx("expense", 200, days_ago=29),  # current window
        tx("expense", 100, days_ago=30),  # previous window
        tx("expense", 999, days_ago=60),  # outside both
        tx("expense", 999, days_ago=-5),  # future dated
    ]

    finding = find(run(transactions), "spending_up")

    assert finding is not None
    assert "~100%" in finding.message


# ---------------------------------------------------------------------------
# Category concentration
# ---------------------------------------------------------------------------


def test_category_concentration_names_dominant_category() -> None:
    transactions = [tx("expense", 500, category="Rent / Workspace")] + [
        tx("expense", 100, category=f"Other {n}") for n in range(4)
    ]

    finding = find(run(transactions), "category_concentration")

    assert finding is not None
    assert finding.id == "category_concentration:Rent / Workspace:2025-06"
    assert finding.category == "patterns"
    assert finding.severity == "low"
    assert '"Rent / Workspace" is about 56%' in finding.message


@pytest.mark.parametrize("top_amount", [400, 450])
def test_category_concentration_requires_share_above_threshold(top_amount) -> None:
    others = (1000 - top_amount) / 4
    transactions = [tx("expense", top_amount, category="Rent")] + [
        tx("expense", others, category=f"Other {n}") for n in range(4)
    ]

    assert find(run(transactions), "category_concentration") is None


def test_category_concentration_ignores_old_expenses_and_small_samples() -> None:
    transactions = [tx("expense", 500, category="Rent")] + [
        tx("expense", 100, days_ago=45, category="Other") for _ in range(4)
    ]

    assert find(run(transactions), "category_concentration") is None


def test_missing_category_counts_as_uncategorized() -> None:
    transactions = [tx("expense", 100) for _ in range(5)]

    finding = find(run(transactions), "category_concentration")

    assert finding is not None
    assert '"Uncategorized" is about 100%' in finding.message


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


def test_overdue_invoices_count_total_and_earliest_due_date() -> None:
    invoices = [
        {"status": "unpaid", "due": "2025-06-01", "amount": 100},
        {"status": "unpaid", "due": "2025-05-20", "amount": 250.5},
        {"status": "paid", "due": "2025-01-01", "amount": 1000},
        {"status": "void", "due": "2025-01-01", "amount": 1000},
        # Due yesterday: not a full day overdue yet
        {"status": "unpaid", "due": "2025-06-14", "amount": 75},
    ]

    finding = find(run(invoices=invoices), "invoices_overdue")

    assert finding is not None
    assert finding.id == "invoices_overdue:2025-05-20"
    assert finding.severity == "high"
    assert finding.message.startswith("2 unpaid invoices are overdue")
    assert "$350.50" in finding.message


@pytest.mark.parametrize(
    "due, overdue",
    [
        ("2025-06-13", True),
        ("2025-06-14", False),
        ("2025-06-15", False),
        ("2025-07-01", False),
        ("not a date", False),
        (None, False),
    ],
)
def test_invoice_is_overdue_iff_due_before_yesterday(due, overdue) -> None:
    invoices = [{"status": "unpaid", "due": due, "amount": 10}]

    finding = find(run(invoices=invoices), "invoices_overdue")

    assert (finding is not None) is overdue


def test_overdue_invoice_example_from_2020() -> None:
    insights = generate_insights([], [{"status": "unpaid", "due": "2020-01-01"}], [], {})

    finding = find(insights, "invoices_overdue")
    assert finding is not None
    assert finding.message.startswith("1 unpaid invoice is overdue")
    assert finding.id == "invoices_overdue:2020-01-01"


def test_invoice_due_date_variants() -> None:
    invoices = [
        {"status": "unpaid", "dueDate": "2025-01-01", "amount": 10},
        {"status": "unpaid", "date": "2025-02-01", "amount": 20},
        Invoice(id="i3", status="unpaid", amount=30.0, due="2025-03-01"),
    ]

    finding = find(run(invoices=invoices), "invoices_overdue")

    assert finding is not None
    assert finding.message.startswith("3 unpaid invoices are overdue")
    assert "$60.00" in finding.message


def test_many_unpaid_invoices_without_overdue_ones() -> None:
    invoices = [
        {"status": "unpaid", "due": "2025-07-01", "amount": 100} for _ in range(5)
    ]

    insights = run(invoices=invoices)

    assert find(insights, "invoices_overdue") is None
    finding = find(insights, "invoices_unpaid")
    assert finding is not None
    assert finding.severity == "medium"
    assert "5 invoices are still unpaid" in finding.message
    assert "$500.00" in finding.message


def test_few_unpaid_invoices_are_silent() -> None:
    invoices = [
        {"status": "unpaid", "due": "2025-07-01", "amount": 100} for _ in range(4)
    ]

    assert run(invoices=invoices) == []


# ---------------------------------------------------------------------------
# Tax funding
# ---------------------------------------------------------------------------

TAXED = Settings(currency_symbol="$", tax_rate=15, state_tax_rate=5)


def test_underfunded_tax_example() -> None:
    transactions = [{"type": "income", "amount": 1000, "date": "2025-06-01"}]

    insights = run(transactions, settings=TAXED)

    finding = find(insights, "tax_underfunded")
    assert finding is not None
    assert finding.severity == "medium"
    assert finding.category == "tax"
    assert "200.00" in finding.message
    assert "$0.00" in finding.message
    assert "0% funded" in finding.message


def test_underfunded_tax_example_with_undated_income() -> None:
    insights = generate_insights(
        [{"type": "income", "amount": 1000}],
        [],
        [],
        {"taxRate": 15, "stateTaxRate": 5},
        today=date(2025, 6, 1),
    )

    finding = find(insights, "tax_underfunded")
    assert finding is not None
    assert "200.00" in finding.message
    assert "0.00" in finding.message


def test_undated_tax_payments_count_toward_the_year() -> None:
    transactions = [{"type": "income", "amount": 1000, "date": ""}]
    payments = [{"amount": 200}]

    insights = run(transactions, tax_payments=payments, settings=TAXED)

    assert find(insights, "tax_underfunded") is None
    finding = find(insights, "tax_on_track")
    assert finding is not None
    assert "100%" in finding.message


def test_malformed_income_dates_are_not_counted_for_tax() -> None:
    transactions = [{"type": "income", "amount": 1000, "date": "last spring"}]

    assert run(transactions, settings=TAXED) == []


def test_underfunded_tax_is_silent_early_in_the_year() -> None:
    transactions = [{"type": "income", "amount": 1000, "date": "2025-01-15"}]

    insights = run(transactions, settings=TAXED, today=date(2025, 2, 10))

    assert find(insights, "tax_underfunded") is None


@pytest.mark.parametrize(
    "paid, expected",
    [
        (0, "tax_underfunded"),
        (119, "tax_underfunded"),
        (120, None),
        (159, None),
        (160, "tax_on_track"),
        (400, "tax_on_track"),
    ],
)
def test_tax_funded_ratio_bands(paid, expected) -> None:
    transactions = [{"type": "income", "amount": 1000, "date": "2025-06-01"}]
    payments = [{"amount": paid, "date": "2025-04-15"}] if paid else []

    found = [k for k in kinds(run(transactions, tax_payments=payments, settings=TAXED)) if k.startswith("tax_")]

    assert found == ([expected] if expected else [])


def test_tax_only_counts_current_calendar_year() -> None:
    transactions = [
        {"type": "income", "amount": 1000, "date": "2025-06-01"},
        {"type": "income", "amount": 50000, "date": "2024-06-01"},
    ]
    payments = [
        TaxPayment(id="p1", amount=200.0, date="2024-12-31"),
        TaxPayment(id="p2", amount=10.0, date="not a date"),
    ]

    finding = find(run(transactions, tax_payments=payments, settings=TAXED), "tax_underfunded")

    assert finding is not None
    assert "$200.00" in finding.message
    assert "only $0.00" in finding.message


def test_tax_rule_needs_income_and_a_rate() -> None:
    transactions = [{"type": "income", "amount": 1000, "date": "2025-06-01"}]

    assert find(run(transactions, settings=NO_TAX), "tax_underfunded") is None
    assert find(run([], settings=TAXED), "tax_underfunded") is None


def test_settings_mapping_and_currency_symbol() -> None:
    transactions = [{"type": "income", "amount": 1000, "date": "2025-06-01"}]
    settings = {"currencySymbol": "€", "taxRate": "15", "stateTaxRate": 5}

    finding = find(run(transactions, settings=settings), "tax_underfunded")

    assert finding is not None
    assert "€200.00" in finding.message


# ---------------------------------------------------------------------------
# Ordering, ids and policy
# ---------------------------------------------------------------------------


def test_insights_are_sorted_by_descending_priority() -> None:
    transactions = [tx("income", 1000)] + [tx("expense", 400) for _ in range(4)]
    invoices = [{"status": "unpaid", "due": "2025-01-01", "amount": 10}]

    insights = run(transactions, invoices=invoices, settings=TAXED)

    assert kinds(insights)[:3] == ["cashflow_negative", "invoices_overdue", "tax_underfunded"]
    priorities = [i.priority for i in insights]
    assert priorities == sorted(priorities, reverse=True)


def test_priority_ties_keep_rule_order() -> None:
    transactions = [tx("income", 1000)] + [tx("expense", 50) for _ in range(4)]
    payments = [{"amount": 200, "date": "2025-04-15"}]

    insights = run(transactions, tax_payments=payments, settings=TAXED)

    assert kinds(insights) == ["cashflow_healthy", "tax_on_track"]
    assert insights[0].priority == insights[1].priority


def test_ids_are_stable_within_a_month_and_change_with_it() -> None:
    transactions = [tx("income", 100)] + [tx("expense", 200) for _ in range(4)]

    first = run(transactions, today=date(2025, 6, 15))
    second = run(transactions, today=date(2025, 6, 20))
    next_month = run(transactions, today=date(2025, 7, 1))

    assert [i.id for i in first] == [i.id for i in second]
    assert find(next_month, "cashflow_negative").id == "cashflow_negative:2025-07"


def test_custom_policy_thresholds() -> None:
    transactions = [tx("expense", 115, days_ago=5), tx("expense", 100, days_ago=40)]

    assert find(run(transactions), "spending_up") is None

    policy = InsightPolicy(spending_rise_threshold=0.10)
    assert find(run(transactions, policy=policy), "spending_up") is not None


def test_dataclass_records_are_accepted() -> None:
    transactions = [
        Transaction(id="t1", type="income", amount=100.0, date="2025-06-10"),
    ] + [
        Transaction(id=f"e{n}", type="expense", amount=200.0, date="2025-06-11")
        for n in range(4)
    ]

    assert find(run(transactions), "cashflow_negative") is not None


def test_default_policy_matches_module_constants() -> None:
    assert DEFAULT_POLICY.spending_rise_threshold == 0.25
    assert DEFAULT_POLICY.concentration_threshold == 0.45
    assert DEFAULT_POLICY.unpaid_volume_threshold == 5
    assert DEFAULT_POLICY.tax_check_start_month == 3


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0, "$0.00"),
        (1234.5, "$1,234.50"),
        (-700, "-$700.00"),
    ],
)
def test_format_money(amount, expected) -> None:
    assert format_money(amount) == expected
