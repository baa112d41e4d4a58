"""Plotly figures for the cycle view.

Each function accepts a frame produced by :func:`rolling_budget.summary.records_frame`
and returns a ``plotly.graph_objects.Figure`` that Streamlit renders via
``st.plotly_chart``.
"""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

STATUS_COLORS = {
    'onTrack': '#2e7d32',
    'warning': '#f9a825',
    'overspent': '#c62828',
}


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_cycle_chart(frame: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Grouped bars of allocated vs spent per day with the balance as a line.

    Parameters
    ----------
    frame : pandas.DataFrame
        One row per day with ``Date``, ``Allocated``, ``Spent`` and ``Balance``.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Combined bar and line chart.
    """
    if frame.empty:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(go.Bar(x=frame['Date'], y=frame['Allocated'], name='Allocated', marker_color='#90caf9'))
    fig.add_trace(go.Bar(x=frame['Date'], y=frame['Spent'], name='Spent', marker_color='#ef9a9a'))
    fig.add_trace(
        go.Scatter(x=frame['Date'], y=frame['Balance'], name='Balance', mode='lines+markers', line={'color': '#37474f'})
    )
    fig.update_layout(
        title=title or "Allocated vs spent",
        barmode='group',
        xaxis_title="Day",
        yaxis_title="Amount",
    )
    return fig


def create_cumulative_balance_chart(frame: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Running total of the daily balances, coloured by each day's status."""
    if frame.empty:
        return _empty_figure()
    df = frame.copy()
    df['Cumulative Balance'] = df['Balance'].cumsum()
    fig = px.scatter(
        df,
        x='Date',
        y='Cumulative Balance',
        color='Status',
        color_discrete_map=STATUS_COLORS,
    )
    fig.add_trace(go.Scatter(x=df['Date'], y=df['Cumulative Balance'], mode='lines', showlegend=False,
                             line={'color': '#90a4ae'}))
    fig.update_layout(
        title=title or "Accumulated balance",
        xaxis_title="Day",
        yaxis_title="Balance",
    )
    return fig
