# =============================================================================
# tests/test_calculator.py - Platform Rule Table Tests
# =============================================================================
# Every rule of PLATFORM_RULES against a fixed rate set, plus the superfoon
# 100% share and the id/name normalization.
#
# Run with: pytest tests/test_calculator.py -v
# =============================================================================

import pytest

from core.calculator import (
    compute_platform_values,
    conversion_rule,
    effective_percentage,
    is_full_share_platform,
    usd_gross,
)
from core.models.earnings import ExchangeRateSet


@pytest.fixture
def rates():
    return ExchangeRateSet(rate_usd_cop=4000, rate_eur_usd=1.0, rate_gbp_usd=1.2)


# =============================================================================
# usd_gross
# =============================================================================

class TestUsdGross:
    """Tests for the piecewise conversion to gross USD."""

    @pytest.mark.parametrize(
        "platform_id, currency, value, expected",
        [
            ("big7", "EUR", 100, 84.0),
            ("mondo", "EUR", 100, 78.0),
            ("othereur", "EUR", 100, 100.0),
            ("aw", "GBP", 100, 81.24),
            ("othergbp", "GBP", 100, 120.0),
            ("cmd", "USD", 100, 75.0),
            ("camlust", "USD", 100, 75.0),
            ("skypvt", "USD", 100, 75.0),
            ("chaturbate", "USD", 1000, 50.0),
            ("myfreecams", "USD", 1000, 50.0),
            ("stripchat", "USD", 1000, 50.0),
            ("dxlive", "USD", 100, 60.0),
            ("secretfriends", "USD", 100, 50.0),
            ("superfoon", "USD", 100, 100.0),
            ("camsoda", "USD", 100, 100.0),
        ],
    )
    def test_rule_table(self, rates, platform_id, currency, value, expected):
        """Each platform rule matches its documented formula."""
        assert usd_gross(value, platform_id, currency, rates) == pytest.approx(expected)

    def test_eur_uses_eur_rate(self):
        """EUR platforms multiply by rate_eur_usd before the discount."""
        rates = ExchangeRateSet(rate_usd_cop=4000, rate_eur_usd=1.1, rate_gbp_usd=1.2)

        assert usd_gross(100, "big7", "EUR", rates) == pytest.approx(100 * 1.1 * 0.84)

    def test_usd_ignores_currency_rates(self):
        """USD platforms never touch the EUR/GBP rates."""
        rates = ExchangeRateSet(rate_usd_cop=4000, rate_eur_usd=9.0, rate_gbp_usd=9.0)

        assert usd_gross(100, "dxlive", "USD", rates) == pytest.approx(60.0)

    def test_rule_lookup_is_per_currency(self):
        """A platform id only matches the rule of its own currency."""
        # big7 reported in USD falls back to the USD default
        assert conversion_rule("big7", "USD").factor == 1.0
        assert conversion_rule("big7", "EUR").factor == 0.84

    def test_platform_id_is_normalized(self, rates):
        """Case and punctuation in the id do not change the rule."""
        assert usd_gross(1000, "Chaturbate", "USD", rates) == pytest.approx(50.0)
        assert usd_gross(100, "BIG-7", "EUR", rates) == pytest.approx(84.0)

    def test_zero_value(self, rates):
        assert usd_gross(0, "big7", "EUR", rates) == 0


# =============================================================================
# Model share
# =============================================================================

class TestModelShare:
    """Tests for the revenue share and the superfoon exception."""

    def test_model_share_uses_percentage(self, rates):
        """usd_modelo = usd_bruto * percentage / 100; cop = usd_modelo * usd_cop."""
        values = compute_platform_values(200, "camsoda", "USD", rates, percentage=80)

        assert values.usd_bruto == pytest.approx(200)
        assert values.usd_modelo == pytest.approx(160)
        assert values.cop_modelo == pytest.approx(640000)
        assert values.percentage == 80

    def test_superfoon_always_full_share(self, rates):
        """Configured 50% still yields 100% share on superfoon."""
        values = compute_platform_values(100, "superfoon", "USD", rates, percentage=50)

        assert values.usd_modelo == values.usd_bruto
        assert values.percentage == 100.0

    @pytest.mark.parametrize("platform_id, name", [
        ("superfoon", None),
        ("SuperFoon", None),
        ("super-foon", None),
        ("sf-01", "Super Foon"),
        ("sf-01", "SUPER_FOON"),
    ])
    def test_superfoon_detection_normalizes(self, platform_id, name):
        """Id or display name normalizing to 'superfoon' is a full-share platform."""
        assert is_full_share_platform(platform_id, name)

    def test_other_platforms_keep_percentage(self):
        assert not is_full_share_platform("big7", "BIG7")
        assert effective_percentage(65, "big7") == 65

    def test_full_share_by_display_name(self, rates):
        """A catalog name is enough to trigger the exception."""
        values = compute_platform_values(
            100, "sf-01", "USD", rates, percentage=60, platform_name="Super Foon"
        )

        assert values.usd_modelo == pytest.approx(100)

    def test_big7_end_to_end(self, rates):
        """100 EUR on big7 at 80%: 84 gross, 67.2 model, 268800 COP."""
        values = compute_platform_values(100, "big7", "EUR", rates, percentage=80)

        assert values.usd_bruto == pytest.approx(84.0)
        assert values.usd_modelo == pytest.approx(67.2)
        assert values.cop_modelo == pytest.approx(268800)
