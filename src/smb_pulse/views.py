# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Tabular views for SMB Pulse.

Helpers converting insights and their summary statistics into pandas
DataFrames, ready to be printed by the CLI or exported to CSV.
"""

import pandas as pd

from .engine import Insight
from .insights_service import InsightStats, priority_label

INSIGHT_COLUMNS = [
    "id",
    "severity",
    "priority",
    "priority_label",
    "category",
    "title",
    "message",
    "detail",
    "actionable",
]


def insights_to_dataframe(insights: list[Insight]) -> pd.DataFrame:
    """
    Convert a list of Insight objects into a pandas DataFrame.

    Row order follows the input list (the caller decides how insights are
    sorted). Missing details are rendered as empty strings.

    Args:
        insights:
            Insights as returned by generate_insights() / filter_insights().

    Returns:
        A DataFrame with the columns listed in INSIGHT_COLUMNS.
    """
    if not insights:
        return pd.DataFrame(columns=INSIGHT_COLUMNS)

    rows: list[dict[str, object]] = []
    for insight in insights:
        rows.append(
            {
                "id": insight.id,
                "severity": insight.severity,
                "priority": insight.priority,
                "priority_label": priority_label(insight.priority),
                "category": insight.category,
                "title": insight.title,
                "message": insight.message,
                "detail": insight.detail or "",
                "actionable": insight.actionable,
            }
        )

    return pd.DataFrame(rows, columns=INSIGHT_COLUMNS)


def stats_to_dataframe(stats: InsightStats) -> pd.DataFrame:
    """Two-column (metric, count) view of the dashboard stats."""
    rows = [
        ("total", stats.total),
        ("active", stats.active),
        ("dismissed", stats.dismissed),
        ("high", stats.high),
        ("medium", stats.medium),
        ("low", stats.low),
        ("actionable", stats.actionable),
    ]
    return pd.DataFrame(rows, columns=["metric", "count"])
