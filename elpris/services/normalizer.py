"""
Price normalizer - turns raw per-kWh prices into display prices in minor units.
"""

from typing import List

from elpris.markets import NORGESPRIS_MIDPOINT, STROMSTOTTE_SUBSIDY_RATE, MarketProfile
from elpris.models.price import (
    DisplayOptions,
    NormalizedPricePoint,
    NorgesprisSplit,
    RawPricePoint,
)


def apply_stromstotte(original_price: float, threshold: float,
                      subsidy_rate: float = STROMSTOTTE_SUBSIDY_RATE) -> float:
    """
    Price after Strømstøtte. The subsidy covers subsidy_rate of the part
    strictly above the threshold.
    """
    if original_price > threshold:
        return threshold + (original_price - threshold) * (1 - subsidy_rate)
    return original_price


def norgespris_split(original_price: float, midpoint: float = NORGESPRIS_MIDPOINT) -> NorgesprisSplit:
    """
    Split a price into its distance below and above the Norgespris midpoint.
    """
    return NorgesprisSplit(
        amount_below=max(0.0, midpoint - original_price),
        amount_above=max(0.0, original_price - midpoint),
    )


def normalize(raw: List[RawPricePoint], options: DisplayOptions,
              profile: MarketProfile) -> List[NormalizedPricePoint]:
    """
    Build display prices from raw prices.

    The original price is VAT-adjusted per the market's VAT model and scaled
    to minor units. Strømstøtte reduces the effective price; Norgespris and
    no scheme leave it equal to the original price.
    """
    profile.validate_options(options)

    vat_factor = profile.vat_multiplier if profile.vat_applies(options) else 1.0
    threshold = profile.stromstotte_threshold(options)

    points = []
    for record in raw:
        original_price = record.price_per_kwh * vat_factor * 100
        if options.is_stromstotte:
            effective_price = apply_stromstotte(original_price, threshold)
        else:
            effective_price = original_price

        points.append(NormalizedPricePoint(
            hour=record.time_start.hour,
            time_start=record.time_start,
            original_price=original_price,
            effective_price=effective_price,
        ))
    return points
