"""
Player State

Plain, serializable state the engine mutates. Holdings are small slotted
dataclasses; PlayerState.to_dict()/from_dict() give the persistence layer a
JSON-compatible shape without the engine caring how it is stored.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from amortization import Loan
from happiness import HappinessState
from taxes import CapitalGainsLedger

INSURANCE_TYPES = ("health", "home", "car", "contents")


@dataclass(slots=True)
class StockHolding:
    shares: float
    avg_buy_price: float

    def to_dict(self) -> Dict[str, float]:
        return {"shares": self.shares, "avg_buy_price": self.avg_buy_price}


@dataclass(slots=True)
class Property:
    """An owned property. Value is size x regional £/m² x quality multiplier."""
    property_id: str
    region: str
    size_sqm: float
    purchase_price: float
    purchase_year: int
    purchase_month: int
    condition: int = 6  # 1..10
    quality_multiplier: float = 1.0
    is_rental: bool = False
    monthly_rental_income: float = 0.0
    is_primary_residence: bool = False
    name: str = ""

    def adjust_condition(self, delta: int) -> None:
        self.condition = max(1, min(10, self.condition + delta))

    def value(self, price_per_sqm: float) -> float:
        return self.size_sqm * price_per_sqm * self.quality_multiplier

    def to_dict(self) -> Dict[str, object]:
        return {
            "property_id": self.property_id,
            "region": self.region,
            "size_sqm": self.size_sqm,
            "purchase_price": self.purchase_price,
            "purchase_year": self.purchase_year,
            "purchase_month": self.purchase_month,
            "condition": self.condition,
            "quality_multiplier": self.quality_multiplier,
            "is_rental": self.is_rental,
            "monthly_rental_income": self.monthly_rental_income,
            "is_primary_residence": self.is_primary_residence,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Property":
        return cls(**data)


@dataclass(slots=True)
class Car:
    name: str
    purchase_price: float
    purchase_year: int
    value: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "purchase_price": self.purchase_price,
            "purchase_year": self.purchase_year,
            "value": self.value,
        }


@dataclass(slots=True)
class Tenancy:
    """A rented home."""
    region: str
    size_sqm: float
    condition: int
    monthly_rent: float
    security_deposit: float
    name: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "region": self.region,
            "size_sqm": self.size_sqm,
            "condition": self.condition,
            "monthly_rent": self.monthly_rent,
            "security_deposit": self.security_deposit,
            "name": self.name,
        }


@dataclass(slots=True)
class PlayerState:
    """
    Everything the engine knows about the player.

    Calendar and age live on the SimClock, not here.
    """

    cash: float = 15000.0
    savings: float = 0.0
    base_annual_salary: float = 30000.0
    stocks: Dict[str, StockHolding] = field(default_factory=dict)
    properties: List[Property] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    insurance: Dict[str, bool] = field(default_factory=lambda: {name: False for name in INSURANCE_TYPES})
    car: Optional[Car] = None
    home_region: str = "London"
    work_region: str = "London"
    married: bool = False
    children: int = 0
    job_loss_months: int = 0

    # Expenses in start-year prices and their inflation-indexed current values
    base_expenses: Dict[str, float] = field(default_factory=dict)
    monthly_expenses: Dict[str, float] = field(default_factory=dict)
    tenancy: Optional[Tenancy] = None

    # Income and expense adjustments accumulated from events (multiplier / GBP)
    income_multiplier: float = 1.0
    extra_monthly_expenses: float = 0.0

    last_gross_monthly_income: float = 0.0
    last_income_tax: float = 0.0
    capital_gains: CapitalGainsLedger = field(default_factory=CapitalGainsLedger)
    happiness: HappinessState = field(default_factory=HappinessState)
    next_id: int = 1

    def allocate_id(self, prefix: str) -> str:
        identifier = f"{prefix}_{self.next_id}"
        self.next_id += 1
        return identifier

    @property
    def primary_residence(self) -> Optional[Property]:
        for prop in self.properties:
            if prop.is_primary_residence:
                return prop
        return None

    def find_property(self, property_id: str) -> Optional[Property]:
        for prop in self.properties:
            if prop.property_id == property_id:
                return prop
        return None

    def mortgage_for(self, property_id: str) -> Optional[Loan]:
        for loan in self.loans:
            if loan.property_id == property_id:
                return loan
        return None

    @property
    def total_debt(self) -> float:
        return sum(loan.remaining_principal for loan in self.loans)

    @property
    def monthly_debt_service(self) -> float:
        return sum(loan.monthly_payment for loan in self.loans)

    @property
    def monthly_rent(self) -> float:
        return self.tenancy.monthly_rent if self.tenancy else 0.0

    @property
    def monthly_living_costs(self) -> float:
        """Non-rent monthly outgoings at current prices."""
        return sum(self.monthly_expenses.values()) + self.extra_monthly_expenses

    def to_dict(self) -> Dict[str, object]:
        return {
            "cash": self.cash,
            "savings": self.savings,
            "base_annual_salary": self.base_annual_salary,
            "stocks": {symbol: holding.to_dict() for symbol, holding in self.stocks.items()},
            "properties": [prop.to_dict() for prop in self.properties],
            "loans": [loan.to_dict() for loan in self.loans],
            "insurance": dict(self.insurance),
            "car": self.car.to_dict() if self.car else None,
            "home_region": self.home_region,
            "work_region": self.work_region,
            "married": self.married,
            "children": self.children,
            "job_loss_months": self.job_loss_months,
            "base_expenses": dict(self.base_expenses),
            "monthly_expenses": dict(self.monthly_expenses),
            "tenancy": self.tenancy.to_dict() if self.tenancy else None,
            "income_multiplier": self.income_multiplier,
            "extra_monthly_expenses": self.extra_monthly_expenses,
            "last_gross_monthly_income": self.last_gross_monthly_income,
            "last_income_tax": self.last_income_tax,
            "capital_gains": self.capital_gains.to_dict(),
            "happiness": self.happiness.to_dict(),
            "next_id": self.next_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "PlayerState":
        car = data.get("car")
        tenancy = data.get("tenancy")
        return cls(
            cash=float(data.get("cash", 0.0)),
            savings=float(data.get("savings", 0.0)),
            base_annual_salary=float(data.get("base_annual_salary", 0.0)),
            stocks={
                symbol: StockHolding(**holding)
                for symbol, holding in data.get("stocks", {}).items()
            },
            properties=[Property.from_dict(prop) for prop in data.get("properties", [])],
            loans=[Loan.from_dict(loan) for loan in data.get("loans", [])],
            insurance={name: bool(data.get("insurance", {}).get(name, False)) for name in INSURANCE_TYPES},
            car=Car(**car) if car else None,
            home_region=data.get("home_region", "London"),
            work_region=data.get("work_region", "London"),
            married=bool(data.get("married", False)),
            children=int(data.get("children", 0)),
            job_loss_months=int(data.get("job_loss_months", 0)),
            base_expenses=dict(data.get("base_expenses", {})),
            monthly_expenses=dict(data.get("monthly_expenses", {})),
            tenancy=Tenancy(**tenancy) if tenancy else None,
            income_multiplier=float(data.get("income_multiplier", 1.0)),
            extra_monthly_expenses=float(data.get("extra_monthly_expenses", 0.0)),
            last_gross_monthly_income=float(data.get("last_gross_monthly_income", 0.0)),
            last_income_tax=float(data.get("last_income_tax", 0.0)),
            capital_gains=CapitalGainsLedger.from_dict(data.get("capital_gains", {})),
            happiness=HappinessState.from_dict(data.get("happiness", {})),
            next_id=int(data.get("next_id", 1)),
        )
