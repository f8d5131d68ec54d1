"""
Pydantic data models for price data and chart responses.
Defines raw upstream records, display options, normalized points and the
chart view handed to renderers.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class SubsidyScheme(str, Enum):
    """
    Pricing scheme applied on top of the VAT-adjusted spot price.
    """
    NONE = "none"
    NORGESPRIS = "norgespris"      # Flat-rate deviation display around a midpoint
    STROMSTOTTE = "stromstotte"    # Threshold-based subsidy


class TextColor(str, Enum):
    BLACK = "black"
    WHITE = "white"


class BarDirection(str, Enum):
    """
    How a bar grows: from the left edge, or outwards from the Norgespris midpoint divider.
    """
    LEFT_ALIGNED = "left_aligned"
    LEFT_OF_MIDPOINT = "left_of_midpoint"
    RIGHT_OF_MIDPOINT = "right_of_midpoint"


class RawPricePoint(BaseModel):
    """
    One upstream price record, tax-exclusive, in the zone's local currency per kWh.

    Upstream JSON format:
    {"NOK_per_kWh": 0.76, "EUR_per_kWh": 0.065, "EXR": 11.68,
     "time_start": "2025-10-18T00:00:00+02:00", "time_end": "2025-10-18T00:15:00+02:00"}
    """
    price_per_kwh: float = Field(description="Tax-exclusive price in local currency per kWh - can be negative")
    time_start: datetime = Field(description="Interval start as ISO-8601 offset datetime")
    time_end: Optional[datetime] = Field(default=None, description="Interval end as ISO-8601 offset datetime")

    class Config:
        frozen = True


class DisplayOptions(BaseModel):
    """
    User-controlled display configuration.
    Subsidy flags are mutually exclusive, which the single scheme field enforces.
    """
    zone: str = Field(description="Price zone code, e.g. NO3 or DK1")
    apply_vat: bool = Field(default=True, description="VAT toggle (toggle-based VAT markets only)")
    subsidy_scheme: SubsidyScheme = Field(default=SubsidyScheme.NONE)

    class Config:
        frozen = True

    @property
    def is_norgespris(self) -> bool:
        return self.subsidy_scheme == SubsidyScheme.NORGESPRIS

    @property
    def is_stromstotte(self) -> bool:
        return self.subsidy_scheme == SubsidyScheme.STROMSTOTTE

    def with_zone(self, zone: str) -> "DisplayOptions":
        return self.model_copy(update={"zone": zone})

    def with_vat(self, apply_vat: bool) -> "DisplayOptions":
        return self.model_copy(update={"apply_vat": apply_vat})

    def with_norgespris(self, enabled: bool) -> "DisplayOptions":
        """Enabling Norgespris clears Strømstøtte; disabling only clears Norgespris."""
        if enabled:
            return self.model_copy(update={"subsidy_scheme": SubsidyScheme.NORGESPRIS})
        if self.is_norgespris:
            return self.model_copy(update={"subsidy_scheme": SubsidyScheme.NONE})
        return self

    def with_stromstotte(self, enabled: bool) -> "DisplayOptions":
        """Enabling Strømstøtte clears Norgespris; disabling only clears Strømstøtte."""
        if enabled:
            return self.model_copy(update={"subsidy_scheme": SubsidyScheme.STROMSTOTTE})
        if self.is_stromstotte:
            return self.model_copy(update={"subsidy_scheme": SubsidyScheme.NONE})
        return self

    def with_toggles(self, apply_vat: Optional[bool] = None, norgespris: Optional[bool] = None,
                     stromstotte: Optional[bool] = None) -> "DisplayOptions":
        """Apply the set toggles in order: VAT, then Norgespris, then Strømstøtte."""
        options = self
        if apply_vat is not None:
            options = options.with_vat(apply_vat)
        if norgespris is not None:
            options = options.with_norgespris(norgespris)
        if stromstotte is not None:
            options = options.with_stromstotte(stromstotte)
        return options

    @classmethod
    def from_flags(cls, zone: str, is_mva: bool, is_norgespris: bool, is_stromstotte: bool) -> "DisplayOptions":
        """Build options from stored boolean flags. Norgespris wins if both flags are set."""
        if is_norgespris:
            scheme = SubsidyScheme.NORGESPRIS
        elif is_stromstotte:
            scheme = SubsidyScheme.STROMSTOTTE
        else:
            scheme = SubsidyScheme.NONE
        return cls(zone=zone, apply_vat=is_mva, subsidy_scheme=scheme)


class NormalizedPricePoint(BaseModel):
    """
    Display-ready price for one interval, in minor currency units (øre/cents).
    """
    hour: int = Field(ge=0, le=23)
    time_start: datetime
    original_price: float = Field(description="VAT-adjusted price in minor units")
    effective_price: float = Field(description="Price after the subsidy rule, equals original_price without one")

    class Config:
        frozen = True


class ChartAggregates(BaseModel):
    """
    Dataset-wide summary used for scaling. Defaults are the empty-dataset fallbacks.
    """
    min_original: float = 0.0
    max_original: float = 1.0
    min_effective: float = 0.0
    max_effective: float = 1.0
    average: float = 0.0
    max_abs_value: float = 1.0
    max_abs_deviation_from_midpoint: float = 1.0


class RGB(BaseModel):
    red: float = Field(ge=0.0, le=1.0)
    green: float = Field(ge=0.0, le=1.0)
    blue: float = Field(ge=0.0, le=1.0)

    class Config:
        frozen = True

    @property
    def luminance(self) -> float:
        return 0.299 * self.red + 0.587 * self.green + 0.114 * self.blue

    @computed_field
    @property
    def hex(self) -> str:
        """CSS color for renderers, serialized with the color."""
        return "#{:02X}{:02X}{:02X}".format(
            round(self.red * 255), round(self.green * 255), round(self.blue * 255)
        )

    def darkened(self, factor: float) -> "RGB":
        return RGB(red=self.red * factor, green=self.green * factor, blue=self.blue * factor)


class NorgesprisSplit(BaseModel):
    """
    A price split around the Norgespris midpoint. At most one side is non-zero.
    """
    amount_below: float = Field(ge=0.0)
    amount_above: float = Field(ge=0.0)


class BarScale(BaseModel):
    """
    Geometry and colors for one bar.
    """
    bar_fraction: float = Field(ge=0.0, le=1.0, description="Bar length as a fraction of the available width, or of the half width for midpoint bars")
    bar_color: RGB
    text_color: TextColor
    is_negative: bool = False
    direction: BarDirection = BarDirection.LEFT_ALIGNED
    split_fraction: Optional[float] = Field(
        default=None, description="Strømstøtte: share of the bar drawn in base color, up to the threshold"
    )
    split_color: Optional[RGB] = Field(default=None, description="Strømstøtte: color of the bar beyond the threshold")


class ChartBar(BaseModel):
    hour: int
    hour_label: str
    price_label: str
    original_price: float
    effective_price: float
    scale: BarScale
    is_current_hour: bool = False
    norgespris: Optional[NorgesprisSplit] = None


class ChartView(BaseModel):
    """
    Everything a renderer needs to draw one day of prices, or the message to show instead.
    """
    market: str
    zone: str
    price_date: date
    options: DisplayOptions
    header: Optional[str] = None
    bars: List[ChartBar] = Field(default_factory=list)
    aggregates: ChartAggregates = Field(default_factory=ChartAggregates)
    threshold_marker: Optional[float] = Field(
        default=None, description="Strømstøtte threshold line position as a fraction of the chart width"
    )
    midpoint_marker: Optional[float] = Field(
        default=None, description="Norgespris divider position as a fraction of the chart width"
    )
    message: Optional[str] = None
    generation: int = 0


class DateOption(BaseModel):
    label: str
    price_date: date
    enabled: bool = True


class Preferences(BaseModel):
    """
    Stored settings for one market, in the key layout of the settings store.
    """
    selected_zone: str
    is_mva: bool = True
    is_norgespris: bool = False
    is_stromstotte: bool = False

    def to_options(self) -> DisplayOptions:
        return DisplayOptions.from_flags(
            self.selected_zone, self.is_mva, self.is_norgespris, self.is_stromstotte
        )

    @classmethod
    def from_options(cls, options: DisplayOptions) -> "Preferences":
        return cls(
            selected_zone=options.zone,
            is_mva=options.apply_vat,
            is_norgespris=options.is_norgespris,
            is_stromstotte=options.is_stromstotte,
        )


class HealthResponse(BaseModel):
    """
    Health check response model.
    """
    status: str = Field(description="Health status")
    timestamp: datetime = Field(description="Health check timestamp")
    details: Optional[dict] = Field(default=None, description="Additional health details")
