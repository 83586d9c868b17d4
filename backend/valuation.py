"""
Valuation Interpolator

Turns sparse year-end anchor prices into a continuous daily price for every
stock and every region's property £/m². Month anchors are a linear blend toward
next year's anchor; days interpolate between consecutive month anchors and get a
bounded multiplicative jitter that is resampled daily rather than compounded.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from clock import days_in_month
from config import CONFIG, SimulationConfig
from reference_data import DEFAULT_REFERENCE_DATA, ReferenceData

logger = logging.getLogger(__name__)

STOCK_PREFIX = "stock_"
PROPERTY_PREFIX = "property_"


class AssetClass(str, Enum):
    STOCK = "stock"
    PROPERTY = "property"


def stock_key(symbol: str) -> str:
    return f"{STOCK_PREFIX}{symbol}"


def property_key(region: str) -> str:
    return f"{PROPERTY_PREFIX}{region}"


def parse_asset_key(asset_key: str) -> Tuple[AssetClass, str]:
    """Split 'stock_HSBC' / 'property_London' into (class, name)."""
    if asset_key.startswith(PROPERTY_PREFIX):
        return AssetClass.PROPERTY, asset_key[len(PROPERTY_PREFIX):]
    if asset_key.startswith(STOCK_PREFIX):
        return AssetClass.STOCK, asset_key[len(STOCK_PREFIX):]
    # Bare names are treated as stock symbols
    return AssetClass.STOCK, asset_key


@dataclass(slots=True)
class DailyPriceState:
    """Bracketing month anchors for one asset."""
    last_month_anchor: float
    current_month_anchor: float
    period: Tuple[int, int]  # (year, month) the current anchor belongs to

    def to_dict(self) -> Dict[str, object]:
        return {
            "last_month_anchor": self.last_month_anchor,
            "current_month_anchor": self.current_month_anchor,
            "period": list(self.period),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "DailyPriceState":
        year, month = data["period"]
        return cls(
            last_month_anchor=float(data["last_month_anchor"]),
            current_month_anchor=float(data["current_month_anchor"]),
            period=(int(year), int(month)),
        )


class ValuationInterpolator:
    """
    Daily price source for every asset key.

    Holds one DailyPriceState per asset. The state rolls forward exactly once
    per (year, month), so calling price_of repeatedly on the same day never
    shifts the anchors twice.
    """

    def __init__(
        self,
        reference: ReferenceData = DEFAULT_REFERENCE_DATA,
        rng: Optional[np.random.Generator] = None,
        config: Optional[SimulationConfig] = None,
    ):
        self.reference = reference
        self.rng = rng if rng is not None else np.random.default_rng()
        self.config = config or CONFIG
        self.states: Dict[str, DailyPriceState] = {}

    # ------------------------------------------------------------------
    # Anchors
    # ------------------------------------------------------------------

    def _series(self, asset_key: str) -> Dict[int, float]:
        asset_class, name = parse_asset_key(asset_key)
        if asset_class == AssetClass.PROPERTY:
            return self.reference.house_price_per_sqm.get(name, {})
        return self.reference.stock_prices.get(name, {})

    def yearly_anchor(self, asset_key: str, year: int) -> Optional[float]:
        asset_class, name = parse_asset_key(asset_key)
        if asset_class == AssetClass.PROPERTY:
            return self.reference.house_price_anchor(name, year)
        return self.reference.stock_anchor(name, year)

    def month_anchor(self, asset_key: str, year: int, month: int) -> Optional[float]:
        """
        Blend this year's anchor toward next year's by month / 12.

        A missing next-year anchor means flat extrapolation; a missing series
        yields None.
        """
        current = self.yearly_anchor(asset_key, year)
        if current is None:
            return None
        following = self._series(asset_key).get(year + 1, current)
        return current + (following - current) * (month / 12.0)

    def volatility(self, asset_key: str) -> float:
        asset_class, _ = parse_asset_key(asset_key)
        volatility = self.config.market.daily_volatility
        if asset_class == AssetClass.PROPERTY:
            volatility /= self.config.market.property_volatility_divisor
        return volatility

    # ------------------------------------------------------------------
    # Daily state
    # ------------------------------------------------------------------

    def _previous_period(self, year: int, month: int) -> Tuple[int, int]:
        if month == 0:
            return year - 1, 11
        return year, month - 1

    def roll_to(self, asset_key: str, year: int, month: int) -> Optional[DailyPriceState]:
        """Ensure the asset's state belongs to (year, month), shifting once if needed."""
        state = self.states.get(asset_key)
        period = (year, month)
        if state is not None and state.period == period:
            return state

        current = self.month_anchor(asset_key, year, month)
        if current is None:
            return None

        if state is None:
            prev_year, prev_month = self._previous_period(year, month)
            last = self.month_anchor(asset_key, prev_year, prev_month)
            state = DailyPriceState(
                last_month_anchor=current if last is None else last,
                current_month_anchor=current,
                period=period,
            )
            self.states[asset_key] = state
        else:
            state.last_month_anchor = state.current_month_anchor
            state.current_month_anchor = current
            state.period = period

        if self.config.debug.log_prices:
            logger.debug(f"{asset_key} anchors for {year}-{month + 1:02d}: "
                         f"{state.last_month_anchor:.2f} -> {state.current_month_anchor:.2f}")
        return state

    def price_of(self, asset_key: str, day: int, month: int, year: int) -> float:
        """
        Price of an asset on a given day.

        Args:
            asset_key: "stock_<symbol>" or "property_<region>"
            day: 1-based day of month
            month: zero-based month
            year: calendar year

        Returns:
            Interpolated, jittered price. The last day of the month returns the
            current month anchor exactly. Unknown assets price at 0.0.
        """
        state = self.roll_to(asset_key, year, month)
        if state is None:
            return 0.0

        total_days = days_in_month(month, year)
        day = min(max(day, 1), total_days)
        if day == total_days:
            return state.current_month_anchor

        base = state.last_month_anchor + (
            state.current_month_anchor - state.last_month_anchor
        ) * (day - 1) / total_days
        jitter = (self.rng.random() - 0.5) * self.volatility(asset_key)
        return base * (1.0 + jitter)

    def quote(self, asset_key: str, day: int, month: int, year: int) -> float:
        """Jitter-free price for any date, computed from anchors without touching state."""
        current = self.month_anchor(asset_key, year, month)
        if current is None:
            return 0.0
        prev_year, prev_month = self._previous_period(year, month)
        last = self.month_anchor(asset_key, prev_year, prev_month)
        if last is None:
            last = current
        total_days = days_in_month(month, year)
        day = min(max(day, 1), total_days)
        if day == total_days:
            return current
        return last + (current - last) * (day - 1) / total_days

    def apply_shock(self, asset_key: str, factor: float, price: Optional[float] = None) -> None:
        """
        Rebase the current month anchor to price x factor.

        Used by market crashes. The next month's roll moves the shocked value
        into last_month_anchor so prices recover along the normal path.
        """
        state = self.states.get(asset_key)
        if state is None:
            return
        reference_price = state.current_month_anchor if price is None else price
        state.current_month_anchor = reference_price * factor
        logger.info(f"{asset_key} shocked by factor {factor:.3f} to {state.current_month_anchor:.2f}")

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        return {key: state.to_dict() for key, state in self.states.items()}

    def restore(self, data: Dict[str, Dict[str, object]]) -> None:
        self.states = {key: DailyPriceState.from_dict(value) for key, value in data.items()}
