"""Health-measure → tier classification.

Bands are closed at the lower edge and open at the upper edge, so a value
exactly on a boundary belongs to the less urgent band above it.
"""
from __future__ import annotations

from ..config import ThresholdsConfig
from ..models import Tier


def classify(health_measure: int | None, thresholds: ThresholdsConfig) -> Tier:
    if health_measure is None:
        return Tier.HEALTHY
    if health_measure < thresholds.liquidation:
        return Tier.LIQUIDATABLE
    if health_measure < thresholds.high_freq:
        return Tier.HIGH_FREQ_WATCH
    if health_measure < thresholds.normal:
        return Tier.NORMAL_WATCH
    return Tier.HEALTHY


def close_factor_for(
    health_measure: int | None,
    close_factor_bps: int,
    full_close_factor_bps: int,
    full_close_factor_below: int,
) -> int:
    """Close factor in bps; deeply undercollateralised accounts may be fully closed."""
    if health_measure is not None and health_measure < full_close_factor_below:
        return full_close_factor_bps
    return close_factor_bps
