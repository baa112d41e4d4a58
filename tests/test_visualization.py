from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pandas as pd
import plotly.graph_objects as go

from rolling_budget.models import DailyRecord
from rolling_budget.summary import records_frame
from rolling_budget.visualization import create_cumulative_balance_chart, create_cycle_chart

from conftest import ANCHOR


def _frame():
    return records_frame([
        DailyRecord(cycle_id=1, date=ANCHOR + timedelta(days=i), allocated=Decimal('50'), spent=Decimal(s))
        for i, s in enumerate(['10', '60', '45'])
    ])


def test_cycle_chart_traces():
    fig = create_cycle_chart(_frame(), title="Week of Jan 1")
    assert isinstance(fig, go.Figure)
    assert [trace.name for trace in fig.data] == ['Allocated', 'Spent', 'Balance']
    assert fig.layout.barmode == 'group'
    assert fig.layout.title.text == "Week of Jan 1"


def test_cumulative_chart_running_total():
    fig = create_cumulative_balance_chart(_frame())
    line = fig.data[-1]
    assert list(line.y) == [40.0, 30.0, 35.0]
    assert fig.layout.title.text == "Accumulated balance"


def test_empty_frames_render_placeholder():
    empty = pd.DataFrame()
    for chart in (create_cycle_chart, create_cumulative_balance_chart):
        fig = chart(empty)
        assert fig.layout.title.text == "No data to display"
        assert len(fig.data) == 0
