"""
User-facing text: localized absence and error messages, chart headers,
date labels and price labels for Norwegian, Danish and Swedish markets.
"""

import math
from datetime import date, datetime, timedelta
from typing import Optional

from elpris.exceptions import NetworkFailure
from elpris.markets import TOMORROW_PUBLISH_HOUR, MarketProfile
from elpris.models.price import DisplayOptions

MESSAGES = {
    "no": {
        "future": "Fremtidige priser strekker seg kun til påfølgende dag etter publisering tidligst kl 13",
        "tomorrow_not_ready": "Prisene for i morgen er ikke klare ennå. De publiseres vanligvis etter kl. 13.",
        "no_data": "Ingen priser funnet for denne dagen.",
        "error": "En feil oppstod: {cause}",
        "header_vat": "Priser i {unit}/kWh inkl. mva for {date}. Snitt: {average}",
        "header_ex_vat": "Priser i {unit}/kWh for {date}. Snitt: {average}",
        "header_stromstotte": "Din pris etter strømstøtte for {date}. Snitt: {average}",
        "header_norgespris": "Priser for {date}. Snitt: {average}",
        "yesterday": "I går",
        "today": "I dag",
        "tomorrow": "I morgen",
    },
    "da": {
        "future": "Fremtidige priser strækker sig kun til følgende dag efter udgivelse tidligst kl. 13",
        "tomorrow_not_ready": "Priserne for i morgen er ikke klar endnu. De offentliggøres normalt efter kl. 13.",
        "no_data": "Ingen priser fundet for denne dag ({date}, {zone}).\nURL forsøgt: {url}",
        "error": "Der opstod en fejl: {cause}",
        "header_vat": "Priser i {unit}/kWh inkl. moms for {date}. Gns: {average}",
        "header_ex_vat": "Priser i {unit}/kWh ekskl. moms for {date}. Gns: {average}",
        "yesterday": "I går",
        "today": "I dag",
        "tomorrow": "I morgen",
    },
    "sv": {
        "future": "Framtida priser sträcker sig bara till följande dag efter publicering tidigast kl. 13",
        "tomorrow_not_ready": "Morgondagens priser är inte klara än. De publiceras vanligtvis efter kl. 13.",
        "no_data": "Inga priser hittades för denna dag.",
        "error": "Ett fel uppstod: {cause}",
        "header_vat": "Priser i {unit}/kWh inkl. moms för {date}. Snitt: {average}",
        "header_ex_vat": "Priser i {unit}/kWh exkl. moms för {date}. Snitt: {average}",
        "yesterday": "Igår",
        "today": "Idag",
        "tomorrow": "Imorgon",
    },
}

MONTHS = {
    "no": ["januar", "februar", "mars", "april", "mai", "juni", "juli",
           "august", "september", "oktober", "november", "desember"],
    "da": ["januar", "februar", "marts", "april", "maj", "juni", "juli",
           "august", "september", "oktober", "november", "december"],
    "sv": ["januari", "februari", "mars", "april", "maj", "juni", "juli",
           "augusti", "september", "oktober", "november", "december"],
}


def _text(profile: MarketProfile, key: str) -> str:
    return MESSAGES[profile.language][key]


def format_date(selected_date: date, profile: MarketProfile) -> str:
    """Long date in the market language, e.g. '18. oktober 26' or '18 oktober 2026'."""
    month = MONTHS[profile.language][selected_date.month - 1]
    if profile.language == "no":
        return f"{selected_date.day:02d}. {month} {selected_date.year % 100:02d}"
    return f"{selected_date.day:02d} {month} {selected_date.year}"


def format_price(value: float, profile: MarketProfile) -> str:
    """Price label with a decimal comma, or rounded half-up to a whole number."""
    if profile.price_decimals == 0:
        return str(int(math.floor(value + 0.5)))
    return f"{value:.{profile.price_decimals}f}".replace(".", ",")


def date_label(key: str, profile: MarketProfile) -> str:
    return _text(profile, key)


def select_absence_message(selected_date: date, now: datetime, profile: MarketProfile,
                           zone: str = "", url: str = "") -> str:
    """
    Message for a date without prices (404 or an empty feed).

    Dates after tomorrow can never be published yet; tomorrow before 13:00 is
    simply early; everything else is a plain "no prices found".
    """
    tomorrow = now.date() + timedelta(days=1)

    if selected_date > tomorrow:
        return _text(profile, "future")
    if selected_date == tomorrow and now.hour < TOMORROW_PUBLISH_HOUR:
        return _text(profile, "tomorrow_not_ready")
    return _text(profile, "no_data").format(date=selected_date.isoformat(), zone=zone, url=url)


def select_error_message(error: Exception, selected_date: date, now: datetime,
                         profile: MarketProfile, zone: str = "", url: Optional[str] = None) -> str:
    """
    Message for a failed fetch. A 404 is treated as absence of data;
    anything else is a generic error with the cause appended.
    """
    if isinstance(error, NetworkFailure) and error.is_not_found:
        return select_absence_message(selected_date, now, profile, zone, url or error.url or "")
    return _text(profile, "error").format(cause=str(error))


def header_text(selected_date: date, average: float, options: DisplayOptions,
                profile: MarketProfile) -> str:
    """Chart header describing price basis, date and daily average."""
    values = {
        "unit": profile.minor_unit,
        "date": format_date(selected_date, profile),
        "average": format_price(average, profile),
    }
    if options.is_stromstotte:
        key = "header_stromstotte"
    elif options.is_norgespris:
        key = "header_norgespris"
    elif profile.vat_applies(options):
        key = "header_vat"
    else:
        key = "header_ex_vat"
    return _text(profile, key).format(**values)
