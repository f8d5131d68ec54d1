"""
Market profiles.
One configuration record per national price feed: where to fetch, which
currency field to read, how VAT is applied and which pricing schemes exist.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from elpris.config import settings
from elpris.exceptions import ConfigurationError
from elpris.models.price import DisplayOptions, SubsidyScheme

VAT_MULTIPLIER = 1.25
NORGESPRIS_MIDPOINT = 50.0
STROMSTOTTE_THRESHOLD_EX_VAT = 75.0
STROMSTOTTE_SUBSIDY_RATE = 0.90
TOMORROW_PUBLISH_HOUR = 13

URL_TEMPLATE = "{base}/api/v1/prices/{year}/{month:02d}-{day:02d}_{zone}.json"


class VatModel(str, Enum):
    ZONE_GATED = "zone_gated"  # VAT unless the zone is exempt, no user toggle
    TOGGLE = "toggle"          # VAT follows the user toggle in every zone


class NotFoundPolicy(str, Enum):
    EMPTY = "empty"  # 404 means no data for the date
    ERROR = "error"  # any non-2xx is a failure carrying the status code


class MarketProfile(BaseModel):
    code: str
    name: str
    base_urls: List[str] = Field(description="Primary base URL first, fallbacks after")
    currency_fields: List[str] = Field(description="Price fields in priority order")
    zones: List[str]
    default_zone: str
    vat_model: VatModel
    vat_multiplier: float = VAT_MULTIPLIER
    vat_exempt_zones: FrozenSet[str] = frozenset()
    subsidy_schemes: List[SubsidyScheme] = Field(default_factory=lambda: [SubsidyScheme.NONE])
    not_found_policy: NotFoundPolicy = NotFoundPolicy.EMPTY
    min_bar_fraction: float = 0.12
    price_decimals: int = 2
    language: str
    timezone: str
    minor_unit: str

    class Config:
        frozen = True

    def vat_applies(self, options: DisplayOptions) -> bool:
        if self.vat_model == VatModel.ZONE_GATED:
            return options.zone not in self.vat_exempt_zones
        return options.apply_vat

    def stromstotte_threshold(self, options: DisplayOptions) -> float:
        """Subsidy threshold in minor units, on the same VAT basis as the original price."""
        if self.vat_applies(options):
            return STROMSTOTTE_THRESHOLD_EX_VAT * self.vat_multiplier
        return STROMSTOTTE_THRESHOLD_EX_VAT

    def build_url(self, base_url: str, target_date, zone: str) -> str:
        return URL_TEMPLATE.format(
            base=base_url.rstrip("/"),
            year=target_date.year,
            month=target_date.month,
            day=target_date.day,
            zone=zone,
        )

    def build_urls(self, target_date, zone: str) -> List[str]:
        return [self.build_url(base, target_date, zone) for base in self.base_urls]

    def validate_options(self, options: DisplayOptions) -> None:
        if options.zone not in self.zones:
            raise ConfigurationError(f"Unknown zone '{options.zone}' for market '{self.code}'")
        if options.subsidy_scheme not in self.subsidy_schemes:
            raise ConfigurationError(
                f"Pricing scheme '{options.subsidy_scheme.value}' is not available in market '{self.code}'"
            )

    def default_options(self) -> DisplayOptions:
        return DisplayOptions(zone=self.default_zone, apply_vat=True, subsidy_scheme=SubsidyScheme.NONE)


NORWAY = MarketProfile(
    code="no",
    name="Norge",
    base_urls=["https://www.hvakosterstrommen.no"],
    currency_fields=["NOK_per_kWh"],
    zones=["NO1", "NO2", "NO3", "NO4", "NO5"],
    default_zone="NO3",
    vat_model=VatModel.ZONE_GATED,
    vat_exempt_zones=frozenset({"NO4"}),
    subsidy_schemes=[SubsidyScheme.NONE, SubsidyScheme.NORGESPRIS, SubsidyScheme.STROMSTOTTE],
    not_found_policy=NotFoundPolicy.ERROR,
    min_bar_fraction=0.12,
    price_decimals=2,
    language="no",
    timezone="Europe/Oslo",
    minor_unit="øre",
)

DENMARK = MarketProfile(
    code="dk",
    name="Danmark",
    base_urls=["https://www.elprisenligenu.dk"],
    currency_fields=["DKK_per_kWh", "SEK_per_kWh", "EUR_per_kWh"],
    zones=["DK1", "DK2"],
    default_zone="DK1",
    vat_model=VatModel.TOGGLE,
    not_found_policy=NotFoundPolicy.EMPTY,
    min_bar_fraction=0.14,
    price_decimals=0,
    language="da",
    timezone="Europe/Copenhagen",
    minor_unit="øre",
)

SWEDEN = MarketProfile(
    code="se",
    name="Sverige",
    base_urls=["https://www.elprisetjustnu.se"],
    currency_fields=["SEK_per_kWh"],
    zones=["SE1", "SE2", "SE3", "SE4"],
    default_zone="SE3",
    vat_model=VatModel.TOGGLE,
    not_found_policy=NotFoundPolicy.EMPTY,
    min_bar_fraction=0.12,
    price_decimals=2,
    language="sv",
    timezone="Europe/Stockholm",
    minor_unit="öre",
)

MARKETS: Dict[str, MarketProfile] = {m.code: m for m in (NORWAY, DENMARK, SWEDEN)}


def get_market(code: Optional[str] = None) -> MarketProfile:
    """
    Look up a market profile, appending any fallback hosts configured for it.
    """
    code = (code or settings.default_market).lower()
    profile = MARKETS.get(code)
    if profile is None:
        raise ConfigurationError(f"Unknown market '{code}'")

    fallbacks = [host for host in settings.fallback_hosts_for(code) if host not in profile.base_urls]
    if fallbacks:
        profile = profile.model_copy(update={"base_urls": profile.base_urls + fallbacks})
    return profile
