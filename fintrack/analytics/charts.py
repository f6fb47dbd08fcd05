"""Plotly figures for the dashboard charts."""

from typing import Optional

import plotly.graph_objects as go

from fintrack.analytics.aggregation import CategorySlice, MonthBucket, has_activity


CHART_COLORS = ["#2563eb", "#16a34a", "#f97316", "#a855f7", "#eab308"]
INCOME_COLOR = "#16a34a"
EXPENSE_COLOR = "#ef4444"


def spending_pie(slices: list[CategorySlice], currency_symbol: str = "₱") -> Optional[go.Figure]:
    """Donut chart of expenses by category, or None when there is no spending."""
    if not slices:
        return None

    fig = go.Figure(go.Pie(
        labels=[s.name for s in slices],
        values=[float(s.value) for s in slices],
        hole=0.55,
        marker=dict(colors=[CHART_COLORS[i % len(CHART_COLORS)] for i in range(len(slices))]),
        hovertemplate=f"%{{label}}<br>{currency_symbol}%{{value:,.2f}}<br>%{{percent}}<extra></extra>",
        sort=False,
    ))
    fig.update_layout(
        title="Spending by Category",
        height=360,
        margin=dict(l=10, r=10, t=50, b=10),
        legend=dict(orientation="h"),
    )
    return fig


def income_expense_bars(buckets: list[MonthBucket], currency_symbol: str = "₱") -> Optional[go.Figure]:
    """Grouped monthly bars of income against expenses, or None with no activity."""
    if not has_activity(buckets):
        return None

    labels = [b.label for b in buckets]
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=labels,
        y=[float(b.income) for b in buckets],
        name="Income",
        marker_color=INCOME_COLOR,
    ))
    fig.add_trace(go.Bar(
        x=labels,
        y=[float(b.expenses) for b in buckets],
        name="Expenses",
        marker_color=EXPENSE_COLOR,
    ))
    fig.update_layout(
        title="Income vs Expenses",
        barmode="group",
        bargap=0.35,
        height=360,
        margin=dict(l=10, r=10, t=50, b=10),
        yaxis=dict(tickprefix=currency_symbol, tickformat=",.0f"),
    )
    return fig
