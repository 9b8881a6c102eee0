"""
Chart Renderer

Renders labeled numeric series into self-contained SVG documents (line, bar
or pie). No external stylesheet or font is referenced; all styling is inline.

Layout adapts to the data:

- left padding grows with the widest formatted y-axis tick label
- bottom padding grows when there are more than 10 x labels (they are
  rotated) and again when an attribution block is drawn
- right padding grows with the legend when there are more than 3 series
- the legend sits top-right for up to 3 short series names, otherwise it
  wraps in rows below the plot
"""

from __future__ import annotations

import base64
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape

from ..models import AttributionInfo, ChartType

DEFAULT_COLORS: List[str] = [
    "#000000",  # black, primary line
    "#22c55e",  # bright green
    "#86efac",  # light green
    "#eab308",  # golden yellow
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#6b7280",  # medium grey
    "#d97706",  # light brown
    "#f87171",  # rose
    "#a78bfa",  # lavender
    "#d1d5db",  # silver
    "#3b82f6",  # blue
    "#10b981",  # green
    "#8b5cf6",  # purple
]

FONT_FAMILY = "system-ui, -apple-system, sans-serif"
GRID_LINES = 5
# Extra canvas height added for the attribution block
ATTRIBUTION_HEIGHT = 50
# Bottom padding reserved above the attribution block
ATTRIBUTION_PADDING = 60
LEGEND_MAX_TOP_RIGHT_SERIES = 3
LEGEND_MAX_TOP_RIGHT_WIDTH = 180


@dataclass
class ChartDataPoint:
    label: str
    value: float
    color: Optional[str] = None


@dataclass
class ChartSeries:
    """Named series; points may cover only part of the chart's labels."""

    name: str
    data: List[ChartDataPoint] = field(default_factory=list)
    color: Optional[str] = None

    def point(self, label: str) -> Optional[ChartDataPoint]:
        for point in self.data:
            if point.label == label:
                return point
        return None


@dataclass
class ChartConfig:
    title: Optional[str] = None
    x_label: Optional[str] = None
    y_label: Optional[str] = None
    width: int = 800
    height: int = 400
    show_legend: bool = True
    colors: List[str] = field(default_factory=lambda: list(DEFAULT_COLORS))
    attribution: Optional[AttributionInfo] = None


@dataclass(frozen=True)
class Padding:
    top: float
    right: float
    bottom: float
    left: float


@dataclass(frozen=True)
class PieSlice:
    label: str
    value: float
    fraction: float
    start_angle: float
    end_angle: float
    color: Optional[str] = None
    index: int = 0

    @property
    def angle(self) -> float:
        return self.end_angle - self.start_angle


def format_value(value: float) -> str:
    """Abbreviate with T/B/M/K suffixes, otherwise two decimals."""
    magnitude = abs(value)
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if magnitude >= threshold:
            return f"{value / threshold:.2f}{suffix}"
    return f"{value:.2f}"


def _n(value: float) -> str:
    """Compact coordinate text."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _text(value: object) -> str:
    return escape(str(value))


def all_labels(series: Sequence[ChartSeries]) -> List[str]:
    """Sorted union of the labels of every series."""
    return sorted({point.label for s in series for point in s.data})


def value_bounds(series: Sequence[ChartSeries]) -> tuple[float, float]:
    values = [point.value for s in series for point in s.data]
    if not values:
        return 0.0, 0.0
    return float(min(values)), float(max(values))


def compute_pie_slices(points: Sequence[ChartDataPoint]) -> List[PieSlice]:
    """Slices in input order, clockwise from 12 o'clock; non-positive values are skipped."""
    positive = [point for point in points if point.value > 0]
    total = sum(point.value for point in positive)

    slices: List[PieSlice] = []
    angle = -math.pi / 2
    for index, point in enumerate(points):
        if point.value <= 0:
            continue
        fraction = point.value / total
        end = angle + fraction * 2 * math.pi
        slices.append(PieSlice(point.label, point.value, fraction, angle, end, point.color, index))
        angle = end
    return slices


def svg_data_uri(svg: str) -> str:
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


class ChartGenerator:
    """SVG chart generator for one configuration."""

    def __init__(self, config: Optional[ChartConfig] = None):
        config = config or ChartConfig()
        self.config = config
        self.width = config.width or 800
        base_height = config.height or 400
        self.height = base_height + ATTRIBUTION_HEIGHT if config.attribution else base_height
        self.colors = config.colors or list(DEFAULT_COLORS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        chart_type: ChartType,
        series: Sequence[ChartSeries],
        points: Sequence[ChartDataPoint] = (),
    ) -> str:
        chart_type = ChartType(chart_type)
        if chart_type == ChartType.LINE:
            return self.generate_line_chart(series)
        if chart_type == ChartType.BAR:
            return self.generate_bar_chart(series)
        return self.generate_pie_chart(points)

    def generate_line_chart(self, series: Sequence[ChartSeries]) -> str:
        labels = all_labels(series)
        min_value, max_value = value_bounds(series)
        padding = self._padding(series, labels, max_value, min_value)
        chart_width = self.width - padding.left - padding.right
        chart_height = self.height - padding.top - padding.bottom
        value_range = (max_value - min_value) or 1
        step = chart_width / ((len(labels) - 1) or 1)

        parts = self._frame(padding, chart_width, chart_height, labels, max_value, min_value)
        for index, s in enumerate(series):
            color = s.color or self._color(index)
            coords = []
            for label_index, label in enumerate(labels):
                point = s.point(label)
                if point is None:
                    continue
                x = padding.left + label_index * step
                y = padding.top + chart_height - ((point.value - min_value) / value_range) * chart_height
                coords.append((x, y))

            if coords:
                path = " L ".join(f"{_n(x)},{_n(y)}" for x, y in coords)
                parts.append(
                    f'<path d="M {path}" fill="none" stroke="{color}" stroke-width="2" opacity="0.9"/>'
                )
            for x, y in coords:
                parts.append(
                    f'<circle cx="{_n(x)}" cy="{_n(y)}" r="3" fill="{color}" '
                    f'stroke="#ffffff" stroke-width="1.5" opacity="0.95"/>'
                )

        parts.append(self._legend(series, padding, chart_width))
        parts.append(self._attribution())
        parts.append("</svg>")
        return "".join(parts)

    def generate_bar_chart(self, series: Sequence[ChartSeries]) -> str:
        labels = all_labels(series)
        observed_min, max_value = value_bounds(series)
        # Bars grow from a zero baseline
        min_value = min(0.0, observed_min)
        padding = self._padding(series, labels, max_value, min_value)
        chart_width = self.width - padding.left - padding.right
        chart_height = self.height - padding.top - padding.bottom
        value_range = (max_value - min_value) or 1

        parts = self._frame(padding, chart_width, chart_height, labels, max_value, min_value)
        if labels and series:
            bar_width = chart_width / (len(labels) * (len(series) + 1))
            group_width = bar_width * len(series)
            slot = chart_width / len(labels)

            for label_index, label in enumerate(labels):
                group_x = padding.left + (label_index + 0.5) * slot - group_width / 2
                for index, s in enumerate(series):
                    point = s.point(label)
                    if point is None:
                        continue
                    color = s.color or point.color or self._color(index)
                    bar_height = ((point.value - min_value) / value_range) * chart_height
                    bar_x = group_x + index * bar_width
                    bar_y = padding.top + chart_height - bar_height
                    parts.append(
                        f'<rect x="{_n(bar_x)}" y="{_n(bar_y)}" width="{_n(bar_width * 0.8)}" '
                        f'height="{_n(bar_height)}" fill="{color}" stroke="#fff" stroke-width="1" opacity="0.8"/>'
                    )
                    parts.append(
                        f'<text x="{_n(bar_x + bar_width * 0.4)}" y="{_n(bar_y - 5)}" text-anchor="middle" '
                        f'font-size="10" fill="#666">{_text(format_value(point.value))}</text>'
                    )

        parts.append(self._legend(series, padding, chart_width))
        parts.append(self._attribution())
        parts.append("</svg>")
        return "".join(parts)

    def generate_pie_chart(self, points: Sequence[ChartDataPoint]) -> str:
        reserved = ATTRIBUTION_PADDING if self.config.attribution else 0
        cx = self.width / 2
        cy = (self.height - reserved) / 2
        radius = max(min(self.width, self.height - reserved) / 2 - 80, 10)

        parts = [self._header(), self._background(), self._title()]
        slices = compute_pie_slices(points)
        for pie_slice in slices:
            color = pie_slice.color or self._color(pie_slice.index)
            if pie_slice.fraction >= 1:
                # A lone slice is a full circle, which an arc path cannot express
                parts.append(
                    f'<circle cx="{_n(cx)}" cy="{_n(cy)}" r="{_n(radius)}" fill="{color}" '
                    f'stroke="#fff" stroke-width="2" opacity="0.9"/>'
                )
            else:
                x1 = cx + radius * math.cos(pie_slice.start_angle)
                y1 = cy + radius * math.sin(pie_slice.start_angle)
                x2 = cx + radius * math.cos(pie_slice.end_angle)
                y2 = cy + radius * math.sin(pie_slice.end_angle)
                large_arc = 1 if pie_slice.angle > math.pi else 0
                path = (
                    f"M {_n(cx)} {_n(cy)} L {_n(x1)} {_n(y1)} "
                    f"A {_n(radius)} {_n(radius)} 0 {large_arc} 1 {_n(x2)} {_n(y2)} Z"
                )
                parts.append(f'<path d="{path}" fill="{color}" stroke="#fff" stroke-width="2" opacity="0.9"/>')

            label_angle = pie_slice.start_angle + pie_slice.angle / 2
            label_x = cx + radius * 0.7 * math.cos(label_angle)
            label_y = cy + radius * 0.7 * math.sin(label_angle)
            parts.append(
                f'<text x="{_n(label_x)}" y="{_n(label_y)}" text-anchor="middle" font-size="12" '
                f'font-weight="bold" fill="#fff">{_text(pie_slice.label)}</text>'
            )
            parts.append(
                f'<text x="{_n(label_x)}" y="{_n(label_y + 15)}" text-anchor="middle" font-size="10" '
                f'fill="#fff">{pie_slice.fraction * 100:.1f}%</text>'
            )

        parts.append('<g transform="translate(20, 60)">')
        for row, pie_slice in enumerate(slices):
            color = pie_slice.color or self._color(pie_slice.index)
            y = row * 25
            parts.append(f'<rect x="0" y="{y}" width="20" height="15" fill="{color}"/>')
            parts.append(
                f'<text x="30" y="{y + 12}" font-size="12" fill="#333">'
                f"{_text(pie_slice.label)}: {_text(format_value(pie_slice.value))}</text>"
            )
        parts.append("</g>")

        parts.append(self._attribution())
        parts.append("</svg>")
        return "".join(parts)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _color(self, index: int) -> str:
        return self.colors[index % len(self.colors)]

    @staticmethod
    def _ticks(max_value: float, min_value: float) -> List[float]:
        step = (max_value - min_value) / GRID_LINES
        return [max_value - step * i for i in range(GRID_LINES + 1)]

    def y_axis_label_width(self, max_value: float, min_value: float) -> float:
        return max(len(format_value(value)) * 7 for value in self._ticks(max_value, min_value))

    @staticmethod
    def legend_width(series: Sequence[ChartSeries]) -> float:
        longest = max((len(s.name) for s in series), default=0)
        return 16 + 6 + longest * 6.5

    def legend_at_bottom(self, series: Sequence[ChartSeries]) -> bool:
        return (
            len(series) > LEGEND_MAX_TOP_RIGHT_SERIES
            or self.legend_width(series) > LEGEND_MAX_TOP_RIGHT_WIDTH
        )

    def _padding(
        self,
        series: Sequence[ChartSeries],
        labels: Sequence[str],
        max_value: float,
        min_value: float,
    ) -> Padding:
        left = max(80, self.y_axis_label_width(max_value, min_value) + 20)
        bottom = (100 if len(labels) > 10 else 80) + (ATTRIBUTION_PADDING if self.config.attribution else 0)
        right = 60
        if len(series) > LEGEND_MAX_TOP_RIGHT_SERIES:
            right = max(60, self.legend_width(series) + 20)
        return Padding(top=60, right=right, bottom=bottom, left=left)

    # ------------------------------------------------------------------
    # Fragments
    # ------------------------------------------------------------------

    def _header(self) -> str:
        return f'<svg width="{self.width}" height="{self.height}" xmlns="http://www.w3.org/2000/svg">'

    @staticmethod
    def _background() -> str:
        return '<rect width="100%" height="100%" fill="#ffffff"/>'

    def _title(self) -> str:
        if not self.config.title:
            return ""
        return (
            f'<text x="{_n(self.width / 2)}" y="28" text-anchor="middle" font-size="16" font-weight="600" '
            f'font-family="{FONT_FAMILY}" fill="#1f2937">{_text(self.config.title)}</text>'
        )

    def _frame(
        self,
        padding: Padding,
        chart_width: float,
        chart_height: float,
        labels: Sequence[str],
        max_value: float,
        min_value: float,
    ) -> List[str]:
        """Header, background, title, axes, grid and x labels shared by line and bar charts."""
        return [
            self._header(),
            self._background(),
            self._title(),
            self._axes(padding, chart_width, chart_height),
            self._grid(padding, chart_width, chart_height, labels, max_value, min_value),
            self._x_labels(padding, chart_width, chart_height, labels),
        ]

    def _axes(self, padding: Padding, chart_width: float, chart_height: float) -> str:
        bottom = padding.top + chart_height
        parts = [
            f'<line x1="{_n(padding.left)}" y1="{_n(bottom)}" x2="{_n(padding.left + chart_width)}" '
            f'y2="{_n(bottom)}" stroke="#374151" stroke-width="1.5"/>',
            f'<line x1="{_n(padding.left)}" y1="{_n(padding.top)}" x2="{_n(padding.left)}" '
            f'y2="{_n(bottom)}" stroke="#374151" stroke-width="1.5"/>',
        ]
        if self.config.x_label:
            parts.append(
                f'<text x="{_n(padding.left + chart_width / 2)}" y="{self.height - 25}" text-anchor="middle" '
                f'font-size="12" font-family="{FONT_FAMILY}" fill="#6b7280">{_text(self.config.x_label)}</text>'
            )
        if self.config.y_label:
            mid = _n(padding.top + chart_height / 2)
            parts.append(
                f'<text x="25" y="{mid}" text-anchor="middle" font-size="12" font-family="{FONT_FAMILY}" '
                f'fill="#6b7280" transform="rotate(-90, 25, {mid})">{_text(self.config.y_label)}</text>'
            )
        return "".join(parts)

    def _grid(
        self,
        padding: Padding,
        chart_width: float,
        chart_height: float,
        labels: Sequence[str],
        max_value: float,
        min_value: float,
    ) -> str:
        parts = []
        for i, value in enumerate(self._ticks(max_value, min_value)):
            y = padding.top + (chart_height / GRID_LINES) * i
            parts.append(
                f'<line x1="{_n(padding.left)}" y1="{_n(y)}" x2="{_n(padding.left + chart_width)}" '
                f'y2="{_n(y)}" stroke="#f3f4f6" stroke-width="0.5"/>'
            )
            parts.append(
                f'<text x="{_n(padding.left - 12)}" y="{_n(y + 4)}" text-anchor="end" font-size="11" '
                f'font-family="{FONT_FAMILY}" fill="#6b7280">{_text(format_value(value))}</text>'
            )

        step = chart_width / ((len(labels) - 1) or 1)
        for i in range(len(labels) + 1):
            x = padding.left + step * i
            parts.append(
                f'<line x1="{_n(x)}" y1="{_n(padding.top)}" x2="{_n(x)}" '
                f'y2="{_n(padding.top + chart_height)}" stroke="#f3f4f6" stroke-width="0.5"/>'
            )
        return "".join(parts)

    def _x_labels(self, padding: Padding, chart_width: float, chart_height: float, labels: Sequence[str]) -> str:
        if not labels:
            return ""

        average_length = sum(len(label) for label in labels) / len(labels)
        rotate = average_length > 6 or len(labels) > 10
        rotation = -45 if rotate else 0
        y = padding.top + chart_height + 20 + (15 if rotate else 0)
        anchor = "end" if rotate else "middle"
        step = chart_width / ((len(labels) - 1) or 1)

        parts = []
        for index, label in enumerate(labels):
            x = padding.left + index * step
            parts.append(
                f'<text x="{_n(x)}" y="{_n(y)}" text-anchor="{anchor}" font-size="10" '
                f'font-family="{FONT_FAMILY}" fill="#6b7280" '
                f'transform="rotate({rotation} {_n(x)} {_n(y)})">{_text(label)}</text>'
            )
        return "".join(parts)

    def _legend(self, series: Sequence[ChartSeries], padding: Padding, chart_width: float) -> str:
        if not self.config.show_legend or not series:
            return ""

        parts = []
        if self.legend_at_bottom(series):
            reserved = ATTRIBUTION_PADDING if self.config.attribution else 0
            legend_y = self.height - reserved - 60
            parts.append(f'<g id="legend" transform="translate({_n(padding.left)}, {_n(legend_y)})">')
            x, y = 0.0, 0.0
            for index, s in enumerate(series):
                item_width = 16 + 6 + len(s.name) * 7
                if index > 0 and x + item_width > chart_width:
                    x = 0.0
                    y += 20
                color = s.color or self._color(index)
                parts.append(f'<rect x="{_n(x)}" y="{_n(y)}" width="16" height="12" fill="{color}" rx="2"/>')
                parts.append(
                    f'<text x="{_n(x + 22)}" y="{_n(y + 9)}" font-size="11" font-family="{FONT_FAMILY}" '
                    f'fill="#374151">{_text(s.name)}</text>'
                )
                x += item_width + 25
        else:
            legend_x = self.width - self.legend_width(series) - 20
            parts.append(f'<g id="legend" transform="translate({_n(legend_x)}, {_n(padding.top)})">')
            for index, s in enumerate(series):
                color = s.color or self._color(index)
                y = index * 20
                parts.append(f'<rect x="0" y="{y}" width="16" height="12" fill="{color}" rx="2"/>')
                parts.append(
                    f'<text x="22" y="{y + 9}" font-size="11" font-family="{FONT_FAMILY}" '
                    f'fill="#374151">{_text(s.name)}</text>'
                )
        parts.append("</g>")
        return "".join(parts)

    def _attribution(self) -> str:
        attribution = self.config.attribution
        if attribution is None:
            return ""

        font_size = 9
        line_height = 13
        inset = 10
        top = self.height - ATTRIBUTION_HEIGHT
        y = top + inset

        parts = [
            '<g id="attribution">',
            f'<rect x="0" y="{top}" width="{self.width}" height="{ATTRIBUTION_HEIGHT}" fill="#ffffff" opacity="0.95"/>',
            f'<line x1="0" y1="{top}" x2="{self.width}" y2="{top}" stroke="#e5e7eb" stroke-width="0.5"/>',
            f'<text x="{inset}" y="{y}" font-size="{font_size + 1}" font-weight="500" '
            f'font-family="{FONT_FAMILY}" fill="#374151">Source: {_text(attribution.sourceName)}</text>',
        ]
        y += line_height
        if attribution.additionalInfo:
            parts.append(
                f'<text x="{inset}" y="{y}" font-size="{font_size}" font-family="{FONT_FAMILY}" '
                f'fill="#6b7280">{_text(attribution.additionalInfo)}</text>'
            )
            y += line_height
        parts.append(
            f'<text x="{inset}" y="{y}" font-size="{font_size}" font-family="{FONT_FAMILY}" fill="#6b7280">'
            f"License: {_text(attribution.license)} | {_text(attribution.sourceUrl)}</text>"
        )
        parts.append("</g>")
        return "".join(parts)
