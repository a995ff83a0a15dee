"""
Chart Render Selection and Plotly Dashboard
Maps normalized samples to draw instructions, then draws them
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .analysis import AxisDomain, SeriesKind, calculate_domain
from .data_sources import SeriesSample


class Representation(str, Enum):
    AREA = 'area'
    LINE = 'line'
    BAR = 'bar'


PRICE_REPRESENTATIONS = (Representation.AREA, Representation.LINE)

POSITIVE = 'positive'
NEGATIVE = 'negative'


@dataclass(frozen=True)
class SeriesPoint:
    timestamp: object
    label: str
    value: Optional[float]
    style: Optional[str] = None  # sign treatment, sentiment only


@dataclass(frozen=True)
class DrawInstruction:
    """One series, ready for the renderer"""
    series: SeriesKind
    representation: Representation
    domain: AxisDomain
    points: tuple


def _gap_preserving_points(samples, kind: SeriesKind) -> tuple:
    # Absent values stay as None so the line breaks instead of shifting
    return tuple(SeriesPoint(s.timestamp, s.label, getattr(s, kind.field)) for s in samples)


def _sentiment_points(samples) -> tuple:
    points = []
    for s in samples:
        # Zero is "no articles" upstream; never draw a zero-height bar
        if s.sentiment is None or s.sentiment == 0:
            continue
        style = POSITIVE if s.sentiment > 0 else NEGATIVE
        points.append(SeriesPoint(s.timestamp, s.label, s.sentiment, style))
    return tuple(points)


def select_render(samples: Sequence[SeriesSample], representation='area',
                  domains: Optional[dict] = None) -> list[DrawInstruction]:
    """Draw instructions in stacking order: price, trend, sentiment"""
    representation = Representation(representation)
    if representation not in PRICE_REPRESENTATIONS:
        raise ValueError(f"Price series can only be drawn as area or line, not {representation.value!r}")

    domains = dict(domains or {})
    for kind in SeriesKind:
        if kind not in domains:
            domains[kind] = calculate_domain(samples, kind)

    return [
        DrawInstruction(SeriesKind.PRICE, representation, domains[SeriesKind.PRICE],
                        _gap_preserving_points(samples, SeriesKind.PRICE)),
        DrawInstruction(SeriesKind.TREND, Representation.LINE, domains[SeriesKind.TREND],
                        _gap_preserving_points(samples, SeriesKind.TREND)),
        DrawInstruction(SeriesKind.SENTIMENT, Representation.BAR, domains[SeriesKind.SENTIMENT],
                        _sentiment_points(samples)),
    ]


class ChartRenderer:
    """Plotly rendering of draw instructions: price+trend pane over sentiment pane"""

    PRICE_COLOR = '#2962FF'
    TREND_COLOR = '#FF9800'
    STYLE_COLORS = {POSITIVE: '#26A69A', NEGATIVE: '#EF5350'}

    def __init__(self, output_path: str = 'output/chart.html', height: int = 800):
        self.output_path = output_path
        self.height = height

    @staticmethod
    def display_range(domain: AxisDomain) -> list:
        """Axis range for plotting; degenerate domains are widened here"""
        if not domain.is_degenerate:
            return domain.to_list()
        half = max(abs(domain.min) * 0.05, 1.0)
        return [domain.min - half, domain.max + half]

    def _price_trace(self, instr: DrawInstruction):
        return go.Scatter(
            x=[p.timestamp for p in instr.points],
            y=[p.value for p in instr.points],
            customdata=[p.label for p in instr.points],
            name='Price',
            mode='lines',
            line={'width': 1.6, 'color': self.PRICE_COLOR},
            fill='tozeroy' if instr.representation is Representation.AREA else None,
            connectgaps=False,
            hovertemplate='%{customdata}<br>$%{y:.2f}<extra></extra>',
        )

    def _trend_trace(self, instr: DrawInstruction):
        return go.Scatter(
            x=[p.timestamp for p in instr.points],
            y=[p.value for p in instr.points],
            customdata=[p.label for p in instr.points],
            name='Search trend',
            mode='lines',
            line={'width': 1.2, 'color': self.TREND_COLOR, 'dash': 'dot'},
            connectgaps=False,
            hovertemplate='%{customdata}<br>Trend %{y:.2f}<extra></extra>',
        )

    def _sentiment_trace(self, instr: DrawInstruction):
        return go.Bar(
            x=[p.timestamp for p in instr.points],
            y=[p.value for p in instr.points],
            customdata=[p.label for p in instr.points],
            name='Sentiment',
            marker={'color': [self.STYLE_COLORS[p.style] for p in instr.points]},
            hovertemplate='%{customdata}<br>Sentiment %{y:.2f}<extra></extra>',
        )

    def build_figure(self, instructions: Sequence[DrawInstruction], title: str = '') -> go.Figure:
        by_series = {i.series: i for i in instructions}
        fig = make_subplots(
            rows=2, cols=1,
            shared_xaxes=True,
            vertical_spacing=0.05,
            row_heights=[0.7, 0.3],
            specs=[[{'secondary_y': True}], [{}]],
        )

        price = by_series.get(SeriesKind.PRICE)
        if price is not None:
            fig.add_trace(self._price_trace(price), row=1, col=1, secondary_y=False)
            fig.update_yaxes(range=self.display_range(price.domain), title_text='Price',
                             row=1, col=1, secondary_y=False)

        trend = by_series.get(SeriesKind.TREND)
        if trend is not None:
            fig.add_trace(self._trend_trace(trend), row=1, col=1, secondary_y=True)
            fig.update_yaxes(range=self.display_range(trend.domain), title_text='Search trend',
                             showgrid=False, row=1, col=1, secondary_y=True)

        sentiment = by_series.get(SeriesKind.SENTIMENT)
        if sentiment is not None:
            fig.add_trace(self._sentiment_trace(sentiment), row=2, col=1)
            fig.update_yaxes(range=self.display_range(sentiment.domain), title_text='Sentiment',
                             zeroline=True, zerolinecolor='#787b86', row=2, col=1)

        fig.update_layout(
            title=title,
            height=self.height,
            template='plotly_dark',
            plot_bgcolor='#131722',
            paper_bgcolor='#131722',
            font=dict(color='#d1d4dc'),
            legend=dict(orientation='h', y=1.02, x=0),
            bargap=0.1,
        )
        fig.update_xaxes(showgrid=True, gridcolor='#363c4e')
        fig.update_yaxes(gridcolor='#363c4e')
        return fig

    def save(self, fig: go.Figure) -> str:
        """Write standalone HTML; returns the absolute path"""
        directory = os.path.dirname(self.output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.write_html(self.output_path, include_plotlyjs='cdn')
        return os.path.abspath(self.output_path)
