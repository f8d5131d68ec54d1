"""
Chart scaling and color mapping.
Computes dataset aggregates and per-bar geometry, colors and labels, and
assembles the chart view for a day of normalized prices.
"""

from datetime import date, datetime
from typing import List, Optional

from elpris.markets import NORGESPRIS_MIDPOINT, MarketProfile
from elpris.models.price import (
    BarDirection,
    BarScale,
    ChartAggregates,
    ChartBar,
    ChartView,
    DisplayOptions,
    NormalizedPricePoint,
    RawPricePoint,
    RGB,
    TextColor,
)
from elpris.services.messages import format_price, header_text
from elpris.services.normalizer import norgespris_split, normalize
from elpris.utils.time_utils import is_current_hour

NEGATIVE_COLOR = RGB(red=0.0, green=0.0, blue=0.0)
DEFAULT_TEXT_LUMINANCE = 0.5
NORGESPRIS_TEXT_LUMINANCE = 0.6
STROMSTOTTE_DARKEN_FACTOR = 0.6


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_aggregates(points: List[NormalizedPricePoint]) -> ChartAggregates:
    """
    Summarize a dataset for scaling.

    Minimums only consider non-negative prices, since negative prices are
    drawn apart from the gradient. An empty dataset gives the model defaults.
    """
    if not points:
        return ChartAggregates()

    originals = [p.original_price for p in points]
    effectives = [p.effective_price for p in points]
    non_negative_originals = [v for v in originals if v >= 0]
    non_negative_effectives = [v for v in effectives if v >= 0]

    max_abs_value = max(abs(v) for v in originals + effectives)

    return ChartAggregates(
        min_original=min(non_negative_originals) if non_negative_originals else 0.0,
        max_original=max(originals),
        min_effective=min(non_negative_effectives) if non_negative_effectives else 0.0,
        max_effective=max(effectives),
        average=sum(effectives) / len(effectives),
        max_abs_value=max_abs_value if max_abs_value > 0 else 1.0,
        # Half-width of the Norgespris chart, never narrower than the midpoint itself
        max_abs_deviation_from_midpoint=max(
            max(abs(v - NORGESPRIS_MIDPOINT), NORGESPRIS_MIDPOINT) for v in originals
        ),
    )


def gradient_color(price: float, min_price: float, max_price: float) -> RGB:
    """Green at the dataset minimum, red at the maximum."""
    price_range = max_price - min_price
    if price_range > 0:
        fraction = _clamp((price - min_price) / price_range, 0.0, 1.0)
    else:
        fraction = 0.0
    return RGB(red=fraction, green=1.0 - fraction, blue=0.0)


def text_color_for(color: RGB, threshold: float = DEFAULT_TEXT_LUMINANCE) -> TextColor:
    return TextColor.BLACK if color.luminance > threshold else TextColor.WHITE


def _negative_bar(price: float, aggregates: ChartAggregates) -> BarScale:
    return BarScale(
        bar_fraction=_clamp(abs(price) / aggregates.max_abs_value, 0.0, 1.0),
        bar_color=NEGATIVE_COLOR,
        text_color=text_color_for(NEGATIVE_COLOR),
        is_negative=True,
    )


def _scale_default(point: NormalizedPricePoint, aggregates: ChartAggregates,
                   min_bar_fraction: float) -> BarScale:
    price = point.original_price
    if price < 0:
        return _negative_bar(price, aggregates)

    price_range = aggregates.max_original - aggregates.min_original
    if price_range > 0:
        scaled = (price - aggregates.min_original) / price_range
        fraction = _clamp(min_bar_fraction + (1.0 - min_bar_fraction) * scaled, min_bar_fraction, 1.0)
    else:
        fraction = 1.0 if price > 0 else 0.0

    color = gradient_color(price, aggregates.min_original, aggregates.max_original)
    return BarScale(bar_fraction=fraction, bar_color=color, text_color=text_color_for(color))


def _scale_norgespris(point: NormalizedPricePoint, aggregates: ChartAggregates) -> BarScale:
    deviation = point.original_price - NORGESPRIS_MIDPOINT
    max_deviation = aggregates.max_abs_deviation_from_midpoint

    color_fraction = _clamp(deviation / max_deviation, -1.0, 1.0)
    if color_fraction < 0:
        color = RGB(red=1.0, green=1.0 - abs(color_fraction), blue=0.0)
    else:
        color = RGB(red=1.0 - color_fraction, green=1.0, blue=0.0)

    return BarScale(
        bar_fraction=_clamp(abs(deviation) / max_deviation, 0.0, 1.0),
        bar_color=color,
        text_color=text_color_for(color, NORGESPRIS_TEXT_LUMINANCE),
        is_negative=point.original_price < 0,
        direction=BarDirection.LEFT_OF_MIDPOINT if deviation < 0 else BarDirection.RIGHT_OF_MIDPOINT,
    )


def _scale_stromstotte(point: NormalizedPricePoint, aggregates: ChartAggregates,
                       threshold: float) -> BarScale:
    price = point.effective_price
    if price < 0:
        return _negative_bar(price, aggregates)

    max_price = aggregates.max_effective
    fraction = _clamp(price / max_price, 0.0, 1.0) if max_price > 0 else 0.0
    color = gradient_color(price, aggregates.min_effective, aggregates.max_effective)

    split_fraction = None
    split_color = None
    if point.original_price > threshold and price > 0:
        split_fraction = _clamp(threshold / price, 0.0, 1.0)
        split_color = color.darkened(STROMSTOTTE_DARKEN_FACTOR)

    return BarScale(
        bar_fraction=fraction,
        bar_color=color,
        text_color=text_color_for(color),
        split_fraction=split_fraction,
        split_color=split_color,
    )


def scale(point: NormalizedPricePoint, aggregates: ChartAggregates, options: DisplayOptions,
          profile: MarketProfile) -> BarScale:
    """
    Bar length, bar color and readable text color for one price point.
    """
    if options.is_norgespris:
        return _scale_norgespris(point, aggregates)
    if options.is_stromstotte:
        return _scale_stromstotte(point, aggregates, profile.stromstotte_threshold(options))
    return _scale_default(point, aggregates, profile.min_bar_fraction)


def threshold_marker(aggregates: ChartAggregates, threshold: float) -> Optional[float]:
    """Position of the Strømstøtte threshold line, when any bar reaches past it."""
    if aggregates.max_effective > threshold:
        return threshold / aggregates.max_effective
    return None


def build_chart_view(profile: MarketProfile, raw: List[RawPricePoint], options: DisplayOptions,
                     selected_date: date, now: datetime, generation: int = 0,
                     message: Optional[str] = None) -> ChartView:
    """
    Normalize, aggregate and scale a day of prices into a renderable chart.
    """
    points = normalize(raw, options, profile)
    aggregates = compute_aggregates(points)

    bars = [
        ChartBar(
            hour=point.hour,
            hour_label=f"{point.hour:02d}",
            price_label=format_price(point.effective_price, profile),
            original_price=point.original_price,
            effective_price=point.effective_price,
            scale=scale(point, aggregates, options, profile),
            is_current_hour=is_current_hour(point.hour, selected_date, now),
            norgespris=norgespris_split(point.original_price) if options.is_norgespris else None,
        )
        for point in points
    ]

    threshold_position = None
    midpoint_position = None
    if bars and options.is_stromstotte:
        threshold_position = threshold_marker(aggregates, profile.stromstotte_threshold(options))
    if bars and options.is_norgespris:
        midpoint_position = 0.5

    return ChartView(
        market=profile.code,
        zone=options.zone,
        price_date=selected_date,
        options=options,
        header=header_text(selected_date, aggregates.average, options, profile) if bars else None,
        bars=bars,
        aggregates=aggregates,
        threshold_marker=threshold_position,
        midpoint_marker=midpoint_position,
        message=message,
        generation=generation,
    )
