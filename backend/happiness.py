"""
Happiness Model

Five factors (financial, living, work-life, social, health) each start from a
baseline and collect additive adjustments from the player's situation. Factors
are clamped to [0, 100] before weighting. The composite adds active short-term
modifiers, a month-of-year seasonal term, and a location term from regional
house prices, and is clamped again.

Modifier expiry uses the linear day counter from clock.absolute_tick.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import CONFIG, SimulationConfig

FACTOR_NAMES = ("financial", "living", "work_life", "social", "health")


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


@dataclass(slots=True)
class ShortTermModifier:
    value: float
    expiry_tick: int
    reason: str = ""

    def is_active(self, tick: int) -> bool:
        return tick < self.expiry_tick

    def to_dict(self) -> Dict[str, object]:
        return {"value": self.value, "expiry_tick": self.expiry_tick, "reason": self.reason}


@dataclass(slots=True)
class HappinessState:
    total: float = 70.0
    factors: Dict[str, float] = field(default_factory=lambda: {name: 70.0 for name in FACTOR_NAMES})
    short_term_modifiers: List[ShortTermModifier] = field(default_factory=list)
    seasonal_modifier: float = 0.0
    location_modifier: float = 0.0

    def add_modifier(self, value: float, expiry_tick: int, reason: str = "") -> None:
        self.short_term_modifiers.append(ShortTermModifier(value, expiry_tick, reason))

    def prune(self, tick: int) -> None:
        """Drop modifiers whose expiry tick has passed."""
        self.short_term_modifiers = [m for m in self.short_term_modifiers if m.is_active(tick)]

    def modifier_total(self, tick: int) -> float:
        return sum(m.value for m in self.short_term_modifiers if m.is_active(tick))

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "factors": dict(self.factors),
            "short_term_modifiers": [m.to_dict() for m in self.short_term_modifiers],
            "seasonal_modifier": self.seasonal_modifier,
            "location_modifier": self.location_modifier,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "HappinessState":
        if not data:
            return cls()
        return cls(
            total=float(data.get("total", 70.0)),
            factors={name: float(data.get("factors", {}).get(name, 70.0)) for name in FACTOR_NAMES},
            short_term_modifiers=[
                ShortTermModifier(float(m["value"]), int(m["expiry_tick"]), m.get("reason", ""))
                for m in data.get("short_term_modifiers", [])
            ],
            seasonal_modifier=float(data.get("seasonal_modifier", 0.0)),
            location_modifier=float(data.get("location_modifier", 0.0)),
        )


@dataclass
class HappinessInputs:
    """
    Snapshot of the player's situation, assembled by the engine.

    Keeps the model independent of engine internals so it can be scored from
    any source of numbers.
    """
    annual_income: float = 0.0
    regional_average_income: Optional[float] = None
    liquid_assets: float = 0.0  # cash + savings
    monthly_outgoings: float = 0.0
    total_debt: float = 0.0
    home_condition: Optional[int] = None  # None when the player has no home
    owns_home: bool = False
    commute_mismatch: bool = False
    unemployed: bool = False
    married: bool = False
    children: int = 0
    insurance: Dict[str, bool] = field(default_factory=dict)
    age: int = 25
    month: int = 0
    local_price_per_sqm: Optional[float] = None
    national_price_per_sqm: Optional[float] = None


class HappinessModel:
    """Scores a HappinessInputs snapshot into a HappinessState."""

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or CONFIG

    @property
    def params(self):
        return self.config.happiness

    def savings_runway_months(self, inputs: HappinessInputs) -> float:
        if inputs.monthly_outgoings <= 0:
            return float("inf") if inputs.liquid_assets > 0 else 0.0
        return max(0.0, inputs.liquid_assets) / inputs.monthly_outgoings

    def financial_factor(self, inputs: HappinessInputs) -> float:
        params = self.params
        score = params.baseline

        if inputs.regional_average_income and inputs.regional_average_income > 0:
            ratio = max(0.0, inputs.annual_income) / inputs.regional_average_income
            score += clamp(params.income_ratio_scale * (ratio - 1.0),
                           params.income_ratio_floor, params.income_ratio_cap)

        runway = self.savings_runway_months(inputs)
        if runway >= 6:
            score += 10
        elif runway >= 3:
            score += 5
        elif runway < 1:
            score -= 15

        if inputs.total_debt <= 0:
            score += 5
        elif inputs.annual_income <= 0:
            score -= 20
        else:
            debt_to_income = inputs.total_debt / inputs.annual_income
            if debt_to_income > params.debt_to_income_high:
                score -= 20
            elif debt_to_income > params.debt_to_income_moderate:
                score -= 10

        if inputs.unemployed:
            score -= 15
        return clamp(score)

    def living_factor(self, inputs: HappinessInputs) -> float:
        score = self.params.baseline
        if inputs.home_condition is None:
            score -= 10
        else:
            score += (inputs.home_condition - 6) * 3
            if inputs.owns_home:
                score += 5
        if inputs.insurance.get("home"):
            score += 2
        if inputs.insurance.get("contents"):
            score += 2
        return clamp(score)

    def work_life_factor(self, inputs: HappinessInputs) -> float:
        score = self.params.baseline
        if inputs.commute_mismatch:
            score -= 15
        if inputs.unemployed:
            score -= 10
        score -= min(12, 3 * max(0, inputs.children))
        return clamp(score)

    def social_factor(self, inputs: HappinessInputs) -> float:
        score = self.params.baseline
        if inputs.married:
            score += 10
        score += min(15, 5 * max(0, inputs.children))
        if inputs.unemployed:
            score -= 5
        return clamp(score)

    def health_factor(self, inputs: HappinessInputs) -> float:
        params = self.params
        score = params.baseline
        score -= max(0, inputs.age - params.health_decay_start_age) * params.health_decay_per_year
        if inputs.insurance.get("health"):
            score += 5
        if self.savings_runway_months(inputs) < 1:
            score -= 5
        return clamp(score)

    def seasonal_modifier(self, month: int) -> float:
        return self.params.seasonal_modifiers[month % 12]

    def location_modifier(self, local: Optional[float], national: Optional[float]) -> float:
        """Pricier-than-average regions score higher, capped both ways."""
        if not local or not national:
            return 0.0
        cap = self.params.location_modifier_cap
        return clamp(self.params.location_modifier_scale * (local / national - 1.0), -cap, cap)

    def recompute(self, inputs: HappinessInputs, state: Optional[HappinessState] = None,
                  tick: int = 0) -> HappinessState:
        """
        Rescore the composite from scratch.

        Args:
            inputs: Current situation
            state: Previous state; its short-term modifiers are carried over
                and pruned against tick
            tick: Current linear day counter

        Returns:
            The updated state (the same object when one was passed in).
        """
        state = state if state is not None else HappinessState()
        state.prune(tick)

        state.factors = {
            "financial": self.financial_factor(inputs),
            "living": self.living_factor(inputs),
            "work_life": self.work_life_factor(inputs),
            "social": self.social_factor(inputs),
            "health": self.health_factor(inputs),
        }
        state.seasonal_modifier = self.seasonal_modifier(inputs.month)
        state.location_modifier = self.location_modifier(
            inputs.local_price_per_sqm, inputs.national_price_per_sqm
        )

        weights = self.params.weights
        weighted = sum(state.factors[name] * weights[name] for name in FACTOR_NAMES)
        state.total = clamp(
            weighted
            + state.modifier_total(tick)
            + state.seasonal_modifier
            + state.location_modifier
        )
        return state
