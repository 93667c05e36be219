# =============================================================================
# core/calculator.py - Platform Value Calculator
# =============================================================================
# Converts a raw platform-reported value into:
# - USD gross    (platform currency -> USD, minus the platform's discount)
# - USD model    (gross * model revenue share)
# - COP model    (USD model * USD->COP rate)
#
# All conversion rules live in PLATFORM_RULES. Every calculation site
# (archive, freeze status, snapshot) goes through usd_gross() /
# compute_platform_values(), so historical rows are reproduced exactly.
#
# Rule table:
#   currency | platform(s)                       | usd_gross
#   ---------+-----------------------------------+---------------------------
#   EUR      | big7                              | value * eur_usd * 0.84
#   EUR      | mondo                             | value * eur_usd * 0.78
#   EUR      | (default)                         | value * eur_usd
#   GBP      | aw                                | value * gbp_usd * 0.677
#   GBP      | (default)                         | value * gbp_usd
#   USD      | cmd, camlust, skypvt              | value * 0.75
#   USD      | chaturbate, myfreecams, stripchat | value * 0.05  (tokens)
#   USD      | dxlive                            | value * 0.60
#   USD      | secretfriends                     | value * 0.5
#   USD      | superfoon, (default)              | value
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

from core.models.earnings import Currency, ExchangeRateSet
from lib.utils import normalize_platform_key

# Platforms whose model share is always 100% of gross.
FULL_SHARE_PLATFORMS = frozenset({"superfoon"})


@dataclass(frozen=True)
class ConversionRule:
    """Multiplier applied after converting to USD."""
    factor: float = 1.0


_DEFAULT_RULE = ConversionRule()

PLATFORM_RULES: dict[Currency, dict[str, ConversionRule]] = {
    Currency.EUR: {
        "big7": ConversionRule(0.84),
        "mondo": ConversionRule(0.78),
    },
    Currency.GBP: {
        "aw": ConversionRule(0.677),
    },
    Currency.USD: {
        "cmd": ConversionRule(0.75),
        "camlust": ConversionRule(0.75),
        "skypvt": ConversionRule(0.75),
        "chaturbate": ConversionRule(0.05),
        "myfreecams": ConversionRule(0.05),
        "stripchat": ConversionRule(0.05),
        "dxlive": ConversionRule(0.60),
        "secretfriends": ConversionRule(0.5),
        "superfoon": ConversionRule(1.0),
    },
}


@dataclass(frozen=True)
class PlatformValues:
    """Derived values for one platform of one model period."""
    usd_bruto: float
    usd_modelo: float
    cop_modelo: float
    percentage: float


def _currency_rate(currency: Currency, rates: ExchangeRateSet) -> float:
    if currency is Currency.EUR:
        return rates.rate_eur_usd
    if currency is Currency.GBP:
        return rates.rate_gbp_usd
    return 1.0


def conversion_rule(platform_id: str, currency: Currency | str) -> ConversionRule:
    """Look up the rule for a platform, falling back to the currency default."""
    rules = PLATFORM_RULES.get(Currency(currency), {})
    return rules.get(normalize_platform_key(platform_id), _DEFAULT_RULE)


def usd_gross(
    value: float,
    platform_id: str,
    currency: Currency | str,
    rates: ExchangeRateSet,
) -> float:
    """
    Convert a platform-reported value to gross USD.

    Example:
        usd_gross(100, "big7", "EUR", rates)       # 100 * eur_usd * 0.84
        usd_gross(1000, "chaturbate", "USD", rates)  # 50.0
    """
    cur = Currency(currency)
    rule = conversion_rule(platform_id, cur)

    if cur is Currency.USD:
        return value * rule.factor
    return (value * _currency_rate(cur, rates)) * rule.factor


def is_full_share_platform(platform_id: str, platform_name: str | None = None) -> bool:
    """True when the platform id or display name normalizes to a 100% platform."""
    return (
        normalize_platform_key(platform_id) in FULL_SHARE_PLATFORMS
        or normalize_platform_key(platform_name) in FULL_SHARE_PLATFORMS
    )


def effective_percentage(
    percentage: float,
    platform_id: str,
    platform_name: str | None = None,
) -> float:
    """Model share for this platform: 100 for full-share platforms, else the configured share."""
    if is_full_share_platform(platform_id, platform_name):
        return 100.0
    return percentage


def compute_platform_values(
    value: float,
    platform_id: str,
    currency: Currency | str,
    rates: ExchangeRateSet,
    percentage: float,
    platform_name: str | None = None,
) -> PlatformValues:
    """
    Gross, model-share and COP values for one platform.

    `percentage` is the model's resolved revenue share; superfoon ignores it.
    """
    gross = usd_gross(value, platform_id, currency, rates)
    share = effective_percentage(percentage, platform_id, platform_name)
    usd_modelo = gross * (share / 100)
    cop_modelo = usd_modelo * rates.rate_usd_cop

    return PlatformValues(
        usd_bruto=gross,
        usd_modelo=usd_modelo,
        cop_modelo=cop_modelo,
        percentage=share,
    )
