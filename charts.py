from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import pandas as pd
import plotly.graph_objects as go

from constants import FROZEN_ALERT_THRESHOLD_C
from models import TemperatureReading
from reports import GroupSummary, PerformanceReport, variation_series

POSITION_COLORS = {"start": "#4B0082", "middle": "#DC2626", "end": "#FBBF24"}
POSITION_LABELS = {"start": "Start", "middle": "Middle", "end": "End"}
PIE_COLORS = ["#4B0082", "#8A2BE2", "#9370DB", "#BA55D3", "#C71585", "#DB7093"]


def _finish_layout(fig: go.Figure, *, height: int, xaxis_title: str, yaxis_title: str) -> go.Figure:
    fig.update_layout(
        template="simple_white",
        height=height,
        margin=dict(l=40, r=20, t=60, b=40),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        xaxis_title=xaxis_title,
        yaxis_title=yaxis_title,
    )
    return fig


def build_product_average_figure(
    rows: Sequence[GroupSummary],
    *,
    part: Optional[int] = None,
    parts: Optional[int] = None,
    height: int = 500,
) -> go.Figure:
    title = "Mean temperature by product"
    if part is not None and parts is not None and parts > 1:
        title += f" (part {part} of {parts})"
    fig = go.Figure(
        go.Bar(
            x=[r.key for r in rows],
            y=[r.mean for r in rows],
            name="Mean temperature",
            marker=dict(color="#4B0082"),
        )
    )
    fig.update_xaxes(tickangle=-45)
    fig.update_layout(title=title)
    return _finish_layout(fig, height=height, xaxis_title="Product", yaxis_title="Temperature (°C)")


def build_location_figure(rows: Sequence[GroupSummary], *, height: int = 400) -> go.Figure:
    fig = go.Figure()
    for position in ("start", "middle", "end"):
        fig.add_trace(
            go.Bar(
                x=[r.key for r in rows],
                y=[getattr(r, f"{position}_mean") for r in rows],
                name=POSITION_LABELS[position],
                marker=dict(color=POSITION_COLORS[position]),
            )
        )
    fig.update_layout(barmode="group", title="Mean temperatures by location")
    return _finish_layout(fig, height=height, xaxis_title="Location", yaxis_title="Temperature (°C)")


def build_variation_figure(
    readings: Sequence[TemperatureReading],
    *,
    threshold: float = FROZEN_ALERT_THRESHOLD_C,
    height: int = 400,
) -> go.Figure:
    fig = go.Figure()
    ordered = [r for r in variation_series(readings) if r.measured_at]
    if ordered:
        x = pd.to_datetime([r.measured_at for r in ordered])
        for position in ("start", "middle", "end"):
            fig.add_trace(
                go.Scatter(
                    x=x,
                    y=[r.temperatures()[position] for r in ordered],
                    mode="lines+markers",
                    name=POSITION_LABELS[position],
                    line=dict(color=POSITION_COLORS[position]),
                    marker=dict(size=6),
                )
            )

    # Frozen external-market limit
    fig.add_hline(y=threshold, line_dash="dash", line_color="#d32f2f", line_width=2)
    fig.add_annotation(
        xref="paper",
        x=0,
        xanchor="right",
        xshift=-16,
        yref="y",
        y=threshold,
        text=f"{threshold:.1f}°C",
        font=dict(color="#d32f2f", size=12),
        showarrow=False,
        align="right",
    )
    fig.update_layout(title="Temperature variation in the period")
    return _finish_layout(fig, height=height, xaxis_title="Time", yaxis_title="Temperature (°C)")


def build_user_activity_figure(activity: List[Tuple[str, int]], *, height: int = 350) -> go.Figure:
    fig = go.Figure(
        go.Pie(
            labels=[name for name, _ in activity],
            values=[entries for _, entries in activity],
            marker=dict(colors=[PIE_COLORS[i % len(PIE_COLORS)] for i in range(len(activity))]),
            textinfo="label+value",
        )
    )
    fig.update_layout(template="simple_white", height=height, margin=dict(l=20, r=20, t=40, b=20))
    return fig


def build_shift_performance_figure(report: PerformanceReport, *, height: int = 350) -> go.Figure:
    labels = [f"Shift {s.shift}" for s in report.shifts]
    fig = go.Figure()
    fig.add_trace(
        go.Bar(x=labels, y=[s.total_entries for s in report.shifts], name="Total readings", marker=dict(color="#4B0082"))
    )
    fig.add_trace(
        go.Bar(x=labels, y=[s.active_users for s in report.shifts], name="Active users", marker=dict(color="#BA55D3"))
    )
    fig.add_trace(
        go.Bar(x=labels, y=[s.mean_per_user for s in report.shifts], name="Mean per user", marker=dict(color="#FBBF24"))
    )
    fig.update_layout(barmode="group", title="Performance by shift")
    return _finish_layout(fig, height=height, xaxis_title="Shift", yaxis_title="")
