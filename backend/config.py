"""
Simulation Configuration

Centralizes all tunable parameters for the life simulation.
Reference tables (prices, tax bands) live in reference_data.py; this module
only holds the knobs that shape how the engine reads and reacts to them.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass
class TimeConfig:
    """Calendar and cadence constants."""
    start_year: int = 2005
    start_month: int = 0  # January
    start_day: int = 1
    start_age: int = 25
    end_age: int = 45

    # Wall-clock cadence used by the server (a tick is one simulated day)
    seconds_per_month: float = 15.0
    fast_seconds_per_month: float = 3.0

    # Tax year settlement point (April 1, simplified from April 6)
    tax_year_start_month: int = 3

    # Linearised day count used for modifier expiry
    days_per_month_linear: int = 30
    days_per_year_linear: int = 365


@dataclass
class MarketConfig:
    """Price interpolation and interest parameters."""
    daily_volatility: float = 0.002  # 0.2% daily jitter band for stocks
    property_volatility_divisor: float = 4.0  # property is a quarter as volatile

    # Market crash effect (multiplies the current month anchor)
    crash_min_factor: float = 0.6
    crash_max_factor: float = 0.8

    # Savings accounts pay a fraction of the base rate
    savings_rate_fraction: float = 0.7

    # Mortgages are priced at base rate + margin
    mortgage_margin: float = 0.02
    personal_loan_margin: float = 0.05


@dataclass
class LoanConfig:
    """Borrowing parameters."""
    default_mortgage_term_years: int = 30
    default_deposit_fraction: float = 0.2
    min_deposit_fraction: float = 0.05

    # Early repayment charge decays linearly to zero over the first years
    early_repayment_initial_rate: float = 0.05
    early_repayment_years: int = 5

    # Renting
    security_deposit_months: int = 3


@dataclass
class HappinessConfig:
    """Composite wellbeing score parameters."""
    baseline: float = 70.0
    weights: Dict[str, float] = field(default_factory=lambda: {
        "financial": 0.30,
        "living": 0.20,
        "work_life": 0.20,
        "social": 0.15,
        "health": 0.15,
    })

    # Discrete by month-of-year (January first)
    seasonal_modifiers: Tuple[float, ...] = (
        -3.0, -3.0, -1.0, 0.0, 1.0, 2.0, 3.0, 3.0, 1.0, 0.0, -2.0, 2.0
    )

    # Location modifier from local / national property price ratio
    location_modifier_scale: float = 5.0
    location_modifier_cap: float = 5.0

    # Financial factor
    income_ratio_scale: float = 25.0
    income_ratio_floor: float = -30.0
    income_ratio_cap: float = 20.0
    debt_to_income_high: float = 4.0
    debt_to_income_moderate: float = 2.0

    # Health factor
    health_decay_start_age: int = 30
    health_decay_per_year: float = 0.5

    # Wellbeing feedback events
    low_wellbeing_threshold: float = 30.0
    high_wellbeing_threshold: float = 80.0
    wellbeing_event_probability: float = 0.01  # per day
    wellbeing_modifier_value: float = 5.0
    wellbeing_modifier_days: int = 30


@dataclass
class PlayerDefaults:
    """Starting position of a new player."""
    starting_cash: float = 15000.0
    base_annual_salary: float = 30000.0
    home_region: str = "London"
    work_region: str = "London"

    # Monthly living costs in start-year prices (rent is tracked separately)
    base_expenses: Dict[str, float] = field(default_factory=lambda: {
        "utilities": 200.0,
        "food": 300.0,
        "transport": 150.0,
        "entertainment": 200.0,
        "other": 100.0,
    })

    # One-off premiums charged when a policy is taken out
    insurance_premiums: Dict[str, float] = field(default_factory=lambda: {
        "health": 300.0,
        "home": 250.0,
        "car": 400.0,
        "contents": 120.0,
    })

    # Starting home: a rented flat in the home region
    starting_home_size_sqm: float = 50.0
    starting_home_condition: int = 6

    car_annual_depreciation: float = 0.15
    personal_loan_term_months: int = 60

    notification_limit: int = 20


@dataclass
class DebugConfig:
    """Debug and logging toggles."""
    log_monthly_settlement: bool = False
    log_events: bool = True
    log_prices: bool = False


@dataclass
class SimulationConfig:
    """Master configuration for the entire simulation."""

    time: TimeConfig = field(default_factory=TimeConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    loans: LoanConfig = field(default_factory=LoanConfig)
    happiness: HappinessConfig = field(default_factory=HappinessConfig)
    player: PlayerDefaults = field(default_factory=PlayerDefaults)
    debug: DebugConfig = field(default_factory=DebugConfig)

    def __post_init__(self):
        """Validation of cross-field invariants."""
        if not (0 <= self.time.start_month <= 11):
            raise ValueError("start_month must be in [0, 11]")
        if not (0 <= self.time.tax_year_start_month <= 11):
            raise ValueError("tax_year_start_month must be in [0, 11]")
        if self.time.end_age <= self.time.start_age:
            raise ValueError("end_age must be greater than start_age")
        if self.time.seconds_per_month <= 0 or self.time.fast_seconds_per_month <= 0:
            raise ValueError("tick cadence must be positive")

        if self.market.daily_volatility < 0:
            raise ValueError("daily_volatility cannot be negative")
        if self.market.property_volatility_divisor <= 0:
            raise ValueError("property_volatility_divisor must be positive")
        if not (0.0 < self.market.crash_min_factor <= self.market.crash_max_factor <= 1.0):
            raise ValueError("crash factors must satisfy 0 < min <= max <= 1")

        if not (0.0 <= self.loans.min_deposit_fraction <= 1.0):
            raise ValueError("min_deposit_fraction must be in [0, 1]")
        if self.loans.early_repayment_initial_rate < 0:
            raise ValueError("early_repayment_initial_rate cannot be negative")

        weight_total = sum(self.happiness.weights.values())
        if abs(weight_total - 1.0) > 1e-9:
            raise ValueError(f"happiness weights must sum to 1.0, got {weight_total}")
        if len(self.happiness.seasonal_modifiers) != 12:
            raise ValueError("seasonal_modifiers must have one entry per month")


# Global configuration instance
CONFIG = SimulationConfig()
