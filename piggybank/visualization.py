"""Plotly visualisation helpers for the piggybank dashboard.

Each function takes the output of :mod:`piggybank.aggregation` or
:mod:`piggybank.reports` and returns a ``plotly.graph_objects.Figure``
that Streamlit renders via ``st.plotly_chart``.  Empty inputs produce an
empty figure titled "No data to display" instead of raising.
"""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

EMPTY_TITLE = "No data to display"


def _empty_figure(title: str = EMPTY_TITLE) -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_category_pie_chart(breakdown: pd.Series, title: str | None = None) -> go.Figure:
    """Donut chart of spending per category.

    Parameters
    ----------
    breakdown : pandas.Series
        Series indexed by category with summed expense amounts, as in
        :attr:`SpendingSummary.breakdown`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Donut chart with percent and label inside each slice.
    """
    if breakdown.empty or float(breakdown.sum()) <= 0:
        return _empty_figure()
    df = breakdown.reset_index()
    df.columns = ["Category", "Amount"]
    fig = px.pie(
        df,
        names="Category",
        values="Amount",
        hole=0.5,
        color_discrete_sequence=px.colors.qualitative.Set3,
    )
    fig.update_traces(textposition="inside", textinfo="percent+label")
    fig.update_layout(title=title or "Spending by category", showlegend=False)
    return fig


def create_budget_vs_actual_chart(performance: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Grouped bars of budget and actual spend per category.

    ``performance`` needs ``Category``, ``Budget`` and ``Actual`` columns.
    """
    if performance.empty:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(go.Bar(name="Budget", x=performance["Category"], y=performance["Budget"], marker_color="#1f77b4"))
    fig.add_trace(go.Bar(name="Actual", x=performance["Category"], y=performance["Actual"], marker_color="#ff7f0e"))
    fig.update_layout(
        title=title or "Budget vs Actual",
        barmode="group",
        xaxis_tickangle=-30,
        yaxis_title="Amount ($)",
    )
    return fig


def create_report_bar_chart(report: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Bar chart of a category report (``Category``/``Amount``/``Count``)."""
    if report.empty:
        return _empty_figure()
    fig = px.bar(report, x="Category", y="Amount", hover_data=["Count"])
    fig.update_layout(
        title=title or "Spending by category",
        xaxis_title="Category",
        yaxis_title="Amount ($)",
    )
    return fig


def budget_performance(breakdown: pd.Series, budgets: pd.DataFrame, scale: float = 1.0) -> pd.DataFrame:
    """Join spend per category with budgets scaled by ``scale``.

    Categories that have a budget or spending are both listed; the
    ``Status`` column is ``Over`` when actual spend exceeds the budget.
    """
    budget_series = pd.Series(dtype=float)
    if not budgets.empty:
        budget_series = (
            budgets.set_index("Category")["MonthlyBudget"].astype(float) * scale
        )
    categories = list(dict.fromkeys(list(budget_series.index) + list(breakdown.index)))
    if not categories:
        return pd.DataFrame(columns=["Category", "Budget", "Actual", "Status"])
    performance = pd.DataFrame({
        "Category": categories,
        "Budget": [float(budget_series.get(c, 0.0)) for c in categories],
        "Actual": [float(breakdown.get(c, 0.0)) for c in categories],
    })
    performance["Status"] = [
        "Over" if actual > budget else "OK"
        for budget, actual in zip(performance["Budget"], performance["Actual"])
    ]
    return performance
