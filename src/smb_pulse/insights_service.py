# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
High-level insight services for SMB Pulse.

This module sits between the pure engine (engine.py), the dismissal store
(dismissals.py) and the presentation layers (CLI, dashboard badge). It
provides:

- `count_active_insights`: badge count of insights not dismissed yet,
- `list_active_insights`: the insights to display,
- `filter_insights`: category / severity filters and sort order,
- `summarize_insights`: counts for the dashboard stats bar,
- `priority_label`: human label for a numeric priority.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, Optional

from .dismissals import DismissalStore
from .engine import SEVERITY_ORDER, Insight, InsightPolicy, generate_insights

logger = logging.getLogger(__name__)

SortKey = Literal["priority", "severity"]


@dataclass(frozen=True)
class InsightStats:
    """
    Aggregated counts over a list of insights.

    `total` counts every generated insight; `active` excludes dismissed ones.
    The severity and actionable counts only consider active insights.
    """

    total: int
    active: int
    dismissed: int
    high: int
    medium: int
    low: int
    actionable: int


def priority_label(priority: int) -> str:
    """Map a 1-10 priority to 'Critical', 'High', 'Medium' or 'Low'."""
    if priority >= 9:
        return "Critical"
    if priority >= 7:
        return "High"
    if priority >= 5:
        return "Medium"
    return "Low"


def filter_insights(
    insights: Iterable[Insight],
    *,
    dismissed: Optional[set[str]] = None,
    category: Optional[str] = None,
    severity: Optional[str] = None,
    sort_by: SortKey = "priority",
) -> list[Insight]:
    """
    Apply dashboard filters to a list of insights.

    Parameters
    ----------
    insights:
        Insights as returned by generate_insights().
    dismissed:
        Ids to hide. None hides nothing.
    category, severity:
        Keep only insights with this category / severity. None keeps all.
    sort_by:
        "priority" (descending priority) or "severity" (high first). Both
        sorts are stable.
    """
    hidden = dismissed or set()
    selected = [
        insight
        for insight in insights
        if insight.id not in hidden
        and (category is None or insight.category == category)
        and (severity is None or insight.severity == severity)
    ]

    if sort_by == "priority":
        return sorted(selected, key=lambda i: i.priority, reverse=True)
    if sort_by == "severity":
        return sorted(
            selected, key=lambda i: SEVERITY_ORDER.get(i.severity, 0), reverse=True
        )
    raise ValueError(f"Unknown sort key: {sort_by!r}")


def summarize_insights(
    insights: Iterable[Insight],
    dismissed: Optional[set[str]] = None,
) -> InsightStats:
    """Compute the dashboard stats bar counts."""
    all_insights = list(insights)
    hidden = dismissed or set()
    active = [i for i in all_insights if i.id not in hidden]

    return InsightStats(
        total=len(all_insights),
        active=len(active),
        dismissed=len(all_insights) - len(active),
        high=sum(1 for i in active if i.severity == "high"),
        medium=sum(1 for i in active if i.severity == "medium"),
        low=sum(1 for i in active if i.severity == "low"),
        actionable=sum(1 for i in active if i.actionable),
    )


def list_active_insights(
    transactions: Any,
    invoices: Any,
    tax_payments: Any,
    settings: Any,
    store: DismissalStore,
    *,
    today: Optional[date] = None,
    policy: Optional[InsightPolicy] = None,
) -> list[Insight]:
    """Generate insights and drop the ones the user dismissed."""
    insights = generate_insights(
        transactions, invoices, tax_payments, settings, today=today, policy=policy
    )
    dismissed = store.get()
    return [insight for insight in insights if insight.id not in dismissed]


def count_active_insights(
    transactions: Any,
    invoices: Any,
    tax_payments: Any,
    settings: Any,
    store: DismissalStore,
    *,
    today: Optional[date] = None,
    policy: Optional[InsightPolicy] = None,
) -> int:
    """
    Number of insights not dismissed yet, for the dashboard badge.

    Never raises: any failure in the engine or the store yields 0.
    """
    try:
        return len(
            list_active_insights(
                transactions,
                invoices,
                tax_payments,
                settings,
                store,
                today=today,
                policy=policy,
            )
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("Insight count unavailable: %s", exc)
        return 0
