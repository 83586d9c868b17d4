"""
Amortization Calculator

Annuity payment, closed-form outstanding balance, and the early repayment
charge, plus the Loan record the engine services each month.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class LoanKind(str, Enum):
    MORTGAGE = "mortgage"
    PERSONAL = "personal"
    CAR = "car"


def monthly_payment(principal: float, annual_rate: float, term_months: int) -> float:
    """
    Standard annuity payment P·r·(1+r)^n / ((1+r)^n − 1), with r = annual_rate / 12.

    Args:
        principal: Amount borrowed
        annual_rate: Annual rate as a fraction (0.05 for 5%)
        term_months: Number of monthly payments

    Returns:
        Fixed monthly payment. A zero rate repays principal evenly.
    """
    principal = max(0.0, principal)
    if term_months <= 0:
        return principal
    r = max(0.0, annual_rate) / 12.0
    if r == 0:
        return principal / term_months
    growth = (1.0 + r) ** term_months
    return principal * r * growth / (growth - 1.0)


def remaining_principal(principal: float, annual_rate: float, term_months: int,
                        elapsed_months: int) -> float:
    """
    Outstanding balance after k payments, from the schedule's closed form.

    P·((1+r)^n − (1+r)^k) / ((1+r)^n − 1). Returns the principal at k = 0 and
    zero once k >= n.
    """
    principal = max(0.0, principal)
    k = max(0, elapsed_months)
    if term_months <= 0 or k >= term_months:
        return 0.0
    r = max(0.0, annual_rate) / 12.0
    if r == 0:
        return principal * (term_months - k) / term_months
    growth_n = (1.0 + r) ** term_months
    growth_k = (1.0 + r) ** k
    return principal * (growth_n - growth_k) / (growth_n - 1.0)


def early_repayment_charge(remaining_balance: float, elapsed_months: int,
                           initial_rate: float = 0.05, charge_years: int = 5) -> float:
    """
    Fee for clearing a loan early.

    A percentage of the outstanding balance that falls linearly from
    initial_rate at origination to zero after charge_years. Never negative.
    """
    if charge_years <= 0:
        return 0.0
    charge_months = charge_years * 12
    rate = initial_rate * (1.0 - max(0, elapsed_months) / charge_months)
    return max(0.0, remaining_balance) * max(0.0, rate)


@dataclass(slots=True)
class Loan:
    """A fixed-rate amortizing loan."""
    loan_id: str
    kind: LoanKind
    principal: float
    annual_rate: float  # fraction, not percent
    term_months: int
    monthly_payment: float
    remaining_principal: float
    origination_year: int
    origination_month: int
    payments_made: int = 0
    property_id: Optional[str] = None  # set for mortgages

    @classmethod
    def originate(cls, loan_id: str, kind: LoanKind, principal: float, annual_rate: float,
                  term_months: int, year: int, month: int,
                  property_id: Optional[str] = None) -> "Loan":
        return cls(
            loan_id=loan_id,
            kind=LoanKind(kind),
            principal=principal,
            annual_rate=annual_rate,
            term_months=term_months,
            monthly_payment=monthly_payment(principal, annual_rate, term_months),
            remaining_principal=principal,
            origination_year=year,
            origination_month=month,
            property_id=property_id,
        )

    @property
    def retired(self) -> bool:
        return self.remaining_principal <= 1e-6

    def elapsed_months(self, year: int, month: int) -> int:
        return max(0, (year - self.origination_year) * 12 + (month - self.origination_month))

    def scheduled_balance(self, elapsed_months: Optional[int] = None) -> float:
        """Closed-form balance, by default after the payments already made."""
        k = self.payments_made if elapsed_months is None else elapsed_months
        return remaining_principal(self.principal, self.annual_rate, self.term_months, k)

    def service(self) -> float:
        """
        Take one monthly payment.

        Returns:
            Cash paid this month. The final payment is capped at what is owed.
        """
        if self.retired:
            return 0.0
        interest = self.remaining_principal * self.annual_rate / 12.0
        payment = min(self.monthly_payment, self.remaining_principal + interest)
        principal_part = max(0.0, payment - interest)
        self.remaining_principal = max(0.0, self.remaining_principal - principal_part)
        self.payments_made += 1
        return payment

    def settlement_amount(self, year: int, month: int, initial_rate: float = 0.05,
                          charge_years: int = 5) -> float:
        """Balance plus early repayment charge to clear the loan now."""
        charge = early_repayment_charge(
            self.remaining_principal,
            self.elapsed_months(year, month),
            initial_rate=initial_rate,
            charge_years=charge_years,
        )
        return self.remaining_principal + charge

    def to_dict(self) -> Dict[str, object]:
        return {
            "loan_id": self.loan_id,
            "kind": self.kind.value,
            "principal": self.principal,
            "annual_rate": self.annual_rate,
            "term_months": self.term_months,
            "monthly_payment": self.monthly_payment,
            "remaining_principal": self.remaining_principal,
            "origination_year": self.origination_year,
            "origination_month": self.origination_month,
            "payments_made": self.payments_made,
            "property_id": self.property_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Loan":
        return cls(
            loan_id=str(data["loan_id"]),
            kind=LoanKind(data["kind"]),
            principal=float(data["principal"]),
            annual_rate=float(data["annual_rate"]),
            term_months=int(data["term_months"]),
            monthly_payment=float(data["monthly_payment"]),
            remaining_principal=float(data["remaining_principal"]),
            origination_year=int(data["origination_year"]),
            origination_month=int(data["origination_month"]),
            payments_made=int(data.get("payments_made", 0)),
            property_id=data.get("property_id"),
        )
