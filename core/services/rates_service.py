# =============================================================================
# core/services/rates_service.py - Rate & Config Resolution
# =============================================================================
# Resolves the exchange rates and the model revenue share that every
# calculation of a closure run uses.
#
# Fallbacks (per field, from Settings):
#   rate_usd_cop  -> DEFAULT_RATE_USD_COP  (3900)
#   rate_eur_usd  -> DEFAULT_RATE_EUR_USD  (1.01)
#   rate_gbp_usd  -> DEFAULT_RATE_GBP_USD  (1.20)
#   percentage    -> override, else group, else DEFAULT_MODEL_PERCENTAGE (80)
#
# Usage:
#   resolver = RateConfigResolver(store)
#   rates = resolver.resolve_rates()
#   config = resolver.resolve_model_config(model_id)
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.config import Settings, get_settings
from core.models.earnings import ExchangeRateSet, ModelRevenueConfig
from core.store.base import EarningsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedModelConfig:
    """Revenue share actually applied to a model during a run."""
    model_id: str
    percentage: float
    enabled_platforms: list[str] = field(default_factory=list)
    source: str = "default"

    def as_snapshot(self) -> dict:
        return {
            "model_id": self.model_id,
            "percentage": self.percentage,
            "enabled_platforms": list(self.enabled_platforms),
            "source": self.source,
        }


class RateConfigResolver:
    """Reads rates and revenue config, filling gaps with configured defaults."""

    def __init__(self, store: EarningsStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    def default_rates(self) -> ExchangeRateSet:
        return ExchangeRateSet(
            rate_usd_cop=self.settings.DEFAULT_RATE_USD_COP,
            rate_eur_usd=self.settings.DEFAULT_RATE_EUR_USD,
            rate_gbp_usd=self.settings.DEFAULT_RATE_GBP_USD,
        )

    def resolve_rates(self) -> ExchangeRateSet:
        """
        Active open-ended rates, one default per missing kind.

        Storage errors propagate; only a missing row falls back.
        """
        found = self.store.fetch_active_rates()
        defaults = self.default_rates().as_snapshot()

        missing = [kind for kind in defaults if kind not in found]
        if missing:
            logger.warning(f"No active rate for {', '.join(missing)}; using defaults")

        return ExchangeRateSet(**{**defaults, **found})

    def resolve_model_config(self, model_id: str) -> ResolvedModelConfig:
        config: ModelRevenueConfig | None = self.store.fetch_model_config(model_id)
        default = self.settings.DEFAULT_MODEL_PERCENTAGE

        if config is None:
            logger.info(f"No active config for model {model_id}; using {default}%")
            return ResolvedModelConfig(model_id=model_id, percentage=default)

        if config.percentage_override is not None:
            source = "override"
        elif config.group_percentage is not None:
            source = "group"
        else:
            source = "default"

        return ResolvedModelConfig(
            model_id=model_id,
            percentage=config.resolved_percentage(default),
            enabled_platforms=list(config.enabled_platforms),
            source=source,
        )
