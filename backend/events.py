"""
Random Events

Life events are described by an ordered table. Each entry has a base monthly
probability, an optional condition-based adjustment, a guard, and a builder
that returns an EventOutcome: a message plus a tuple of typed effect
descriptors. Builders never touch the player; the engine applies effects in a
single place.

Also hosts the wellbeing feedback events fired by very low or very high
happiness.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

from config import CONFIG, SimulationConfig
from player import PlayerState

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Effect descriptors
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class CashChange:
    amount: float


@dataclass(frozen=True)
class JobLoss:
    months: int


@dataclass(frozen=True)
class MarketCrash:
    price_factor: float


@dataclass(frozen=True)
class Divorce:
    asset_share_lost: float = 0.5


@dataclass(frozen=True)
class ChildExpense:
    monthly_amount: float


@dataclass(frozen=True)
class PropertyConditionChange:
    property_id: str
    delta: int


@dataclass(frozen=True)
class IncomeChange:
    multiplier: float


@dataclass(frozen=True)
class ExpenseChange:
    monthly_amount: float


@dataclass(frozen=True)
class HappinessModifier:
    value: float
    days: int


Effect = Union[
    CashChange,
    JobLoss,
    MarketCrash,
    Divorce,
    ChildExpense,
    PropertyConditionChange,
    IncomeChange,
    ExpenseChange,
    HappinessModifier,
]


@dataclass(frozen=True)
class EventOutcome:
    event_id: str
    name: str
    message: str
    effects: Tuple[Effect, ...] = ()


@dataclass
class EventContext:
    """Read-only view handed to guards and builders."""
    player: PlayerState
    age: int
    property_values: Dict[str, float] = field(default_factory=dict)
    monthly_income: float = 0.0
    config: SimulationConfig = field(default_factory=lambda: CONFIG)

    @property
    def worst_property(self):
        if not self.player.properties:
            return None
        return min(self.player.properties, key=lambda prop: prop.condition)


Guard = Callable[[EventContext], bool]
Builder = Callable[[EventContext, np.random.Generator], EventOutcome]
Adjustment = Callable[[EventContext], float]


@dataclass(frozen=True)
class RandomEvent:
    event_id: str
    name: str
    probability: float
    build: Builder
    guard: Optional[Guard] = None
    probability_adjustment: Optional[Adjustment] = None

    def effective_probability(self, context: EventContext) -> float:
        probability = self.probability
        if self.probability_adjustment is not None:
            probability += self.probability_adjustment(context)
        return min(1.0, max(0.0, probability))

    def applies(self, context: EventContext) -> bool:
        return self.guard is None or self.guard(context)


# ----------------------------------------------------------------------
# Guards and adjustments
# ----------------------------------------------------------------------

def _owns_property(context: EventContext) -> bool:
    return bool(context.player.properties)


def _owns_car(context: EventContext) -> bool:
    return context.player.car is not None


def _is_married(context: EventContext) -> bool:
    return context.player.married


def _child_bearing_age(context: EventContext) -> bool:
    return 25 <= context.age <= 40


def _condition_risk(per_point: float) -> Adjustment:
    """Extra probability for every condition point below 7 on the worst property."""
    def adjustment(context: EventContext) -> float:
        worst = context.worst_property
        if worst is None:
            return 0.0
        return max(0, 7 - worst.condition) * per_point
    return adjustment


# ----------------------------------------------------------------------
# Builders
# ----------------------------------------------------------------------

def _fire(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    prop = context.worst_property
    value = context.property_values.get(prop.property_id, prop.purchase_price)
    damage_share = 0.15 + max(0, 6 - prop.condition) * 0.01
    if context.player.insurance.get("home"):
        cost = 500.0
        message = f"Your property in {prop.region} had a fire. Insurance covered most of it; you paid a £500 excess."
    else:
        cost = value * damage_share
        message = f"Your property in {prop.region} had a fire! Repairs cost £{cost:,.0f}."
    return EventOutcome("fire", "House Fire", message, (
        CashChange(-cost),
        PropertyConditionChange(prop.property_id, -2),
        HappinessModifier(-5.0, 30),
    ))


def _medical(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    if context.player.insurance.get("health"):
        cost = 200.0
        message = "You had a medical emergency. Health insurance covered most costs; you paid a £200 excess."
    else:
        cost = 500.0 + rng.random() * 2000.0
        message = f"You had a medical emergency and paid £{cost:,.0f} in medical bills."
    return EventOutcome("medical", "Medical Emergency", message, (CashChange(-cost),))


def _job_loss(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    months = int(rng.integers(1, 4))
    message = f"You lost your job and will be without income for {months} months."
    return EventOutcome("job_loss", "Job Loss", message, (
        JobLoss(months),
        HappinessModifier(-10.0, 30),
    ))


def _market_crash(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    market = context.config.market
    factor = market.crash_min_factor + rng.random() * (market.crash_max_factor - market.crash_min_factor)
    message = f"A stock market crash has occurred! Share prices fell to {factor:.0%} of their value."
    return EventOutcome("market_crash", "Stock Market Crash", message, (MarketCrash(factor),))


def _divorce(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    message = "Your marriage has ended in divorce. Half of your cash and savings go to your former spouse."
    return EventOutcome("divorce", "Divorce", message, (
        Divorce(0.5),
        HappinessModifier(-15.0, 90),
    ))


def _car_accident(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    car = context.player.car
    if context.player.insurance.get("car"):
        cost = 250.0
        message = "You had a car accident. Insurance covered most of the damage; you paid a £250 excess."
    else:
        cost = car.value * 0.2
        message = f"You had a car accident! Repairs cost £{cost:,.0f}."
    return EventOutcome("car_accident", "Traffic Accident", message, (CashChange(-cost),))


def _home_repair(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    prop = context.worst_property
    value = context.property_values.get(prop.property_id, prop.purchase_price)
    scale = max(0.5, 1.0 + (7 - prop.condition) * 0.1)
    cost = value * 0.03 * scale
    improvement = min(2, 10 - prop.condition)
    message = f"Your property in {prop.region} needs urgent repairs costing £{cost:,.0f}."
    return EventOutcome("home_repair", "Home Repair", message, (
        CashChange(-cost),
        PropertyConditionChange(prop.property_id, improvement),
    ))


def _child(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    message = "Congratulations! You have a child. Monthly expenses rise by £500."
    return EventOutcome("child", "New Child", message, (
        ChildExpense(500.0),
        HappinessModifier(10.0, 60),
    ))


def _inheritance(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    amount = 5000.0 + rng.random() * 20000.0
    message = f"You received an inheritance of £{amount:,.0f}."
    return EventOutcome("inheritance", "Inheritance", message, (CashChange(amount),))


def _theft(context: EventContext, rng: np.random.Generator) -> EventOutcome:
    if context.player.insurance.get("contents"):
        cost = 100.0
        message = "You were burgled. Contents insurance covered the loss; you paid a £100 excess."
    else:
        cost = 500.0 + rng.random() * 1500.0
        message = f"You were burgled and lost £{cost:,.0f}."
    return EventOutcome("theft", "Theft", message, (
        CashChange(-cost),
        HappinessModifier(-3.0, 14),
    ))


DEFAULT_EVENTS: Tuple[RandomEvent, ...] = (
    RandomEvent("fire", "House Fire", 0.002, _fire, guard=_owns_property,
                probability_adjustment=_condition_risk(0.001)),
    RandomEvent("medical", "Medical Emergency", 0.003, _medical),
    RandomEvent("job_loss", "Job Loss", 0.001, _job_loss),
    RandomEvent("market_crash", "Stock Market Crash", 0.001, _market_crash),
    RandomEvent("divorce", "Divorce", 0.001, _divorce, guard=_is_married),
    RandomEvent("car_accident", "Traffic Accident", 0.002, _car_accident, guard=_owns_car),
    RandomEvent("home_repair", "Home Repair", 0.003, _home_repair, guard=_owns_property,
                probability_adjustment=_condition_risk(0.001)),
    RandomEvent("child", "New Child", 0.001, _child, guard=_child_bearing_age),
    RandomEvent("inheritance", "Inheritance", 0.0005, _inheritance),
    RandomEvent("theft", "Theft", 0.002, _theft),
)


class RandomEventSampler:
    """
    Draws at most one event per monthly settlement.

    Walks the table in order with one uniform draw per event and returns the
    first event whose draw succeeds and whose guard holds.
    """

    def __init__(self, rng: np.random.Generator, events: Tuple[RandomEvent, ...] = DEFAULT_EVENTS,
                 config: Optional[SimulationConfig] = None):
        self.rng = rng
        self.events = tuple(events)
        self.config = config or CONFIG

    def sample(self, context: EventContext) -> Optional[EventOutcome]:
        for event in self.events:
            if self.rng.random() >= event.effective_probability(context):
                continue
            if not event.applies(context):
                continue
            outcome = event.build(context, self.rng)
            if self.config.debug.log_events:
                logger.info(f"Random event fired: {event.event_id}")
            return outcome
        return None


# ----------------------------------------------------------------------
# Wellbeing feedback
# ----------------------------------------------------------------------

def sample_wellbeing_event(total: float, monthly_income: float, rng: np.random.Generator,
                           config: Optional[SimulationConfig] = None) -> Optional[EventOutcome]:
    """
    Daily chance of a knock-on event when happiness is extreme.

    Below the low threshold a stress event may cut income or add costs; above
    the high threshold a bonus or raise may arrive. Either way a matching
    short-term modifier is attached.
    """
    params = (config or CONFIG).happiness
    value = params.wellbeing_modifier_value
    days = params.wellbeing_modifier_days

    if total < params.low_wellbeing_threshold:
        if rng.random() >= params.wellbeing_event_probability:
            return None
        if rng.random() < 0.5:
            return EventOutcome("stress_income", "Stress at Work",
                                "Stress is affecting your work performance. Your income fell by 5%.",
                                (IncomeChange(0.95), HappinessModifier(-value, days)))
        return EventOutcome("stress_health", "Stress and Health",
                            "Your health is suffering from stress. Medical expenses went up.",
                            (ExpenseChange(100.0), HappinessModifier(-value, days)))

    if total > params.high_wellbeing_threshold:
        if rng.random() >= params.wellbeing_event_probability:
            return None
        if rng.random() < 0.5:
            bonus = max(0.0, monthly_income) * 0.5
            return EventOutcome("performance_bonus", "Performance Bonus",
                                f"Your positive attitude earned a £{bonus:,.0f} bonus!",
                                (CashChange(bonus), HappinessModifier(value, days)))
        return EventOutcome("small_raise", "Small Raise",
                            "Your work-life balance has improved. You received a 2% raise!",
                            (IncomeChange(1.02), HappinessModifier(value, days)))

    return None

