"""
UK Tax Engine

Pure functions over bracket and band tables: income tax, capital gains tax,
stamp duty land tax, and rental income tax. Table selection always uses the
latest table year on or before the target year. Inputs are clamped, and a year
with no applicable table is taxed at zero.

CapitalGainsLedger is the only stateful piece: it accumulates realised gains
during a tax year and is settled once at the tax-year boundary.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from reference_data import DEFAULT_REFERENCE_DATA, Brackets, ReferenceData


def progressive_tax(amount: float, brackets: Optional[Brackets], offset: float = 0.0) -> float:
    """
    Tax a slice of income against ordered (lower_threshold, rate) brackets.

    Args:
        amount: Size of the slice being taxed
        brackets: Bracket table; the last bracket has unbounded width
        offset: Income already occupying the lower bands (the slice is stacked
            on top of it)

    Returns:
        Tax due on the slice, never negative.
    """
    if not brackets:
        return 0.0
    amount = max(0.0, amount)
    offset = max(0.0, offset)
    start = offset
    end = offset + amount

    tax = 0.0
    for index, (lower, rate) in enumerate(brackets):
        upper = brackets[index + 1][0] if index + 1 < len(brackets) else float("inf")
        overlap = min(end, upper) - max(start, lower)
        if overlap > 0:
            tax += overlap * rate
        if end <= upper:
            break
    return tax


def income_tax(annual_income: float, year: int,
               reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """Annual income tax on an annualised income figure."""
    return progressive_tax(annual_income, reference.income_tax_table(year))


def monthly_income_tax(gross_monthly_income: float, year: int,
                       reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """Monthly charge: tax on the annualised income, divided by 12."""
    return income_tax(gross_monthly_income * 12, year, reference) / 12.0


def capital_gains_tax(gains: float, year: int,
                      reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """
    Tax on a tax year's realised gains.

    Everything above the annual allowance is charged at the higher rate,
    whatever the player's income band.
    """
    table = reference.capital_gains_table(year)
    if table is None:
        return 0.0
    taxable = max(0.0, gains - table.allowance)
    return taxable * table.higher_rate


def stamp_duty(price: float, year: int, additional_property: bool = False,
               reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """
    Stamp duty land tax on a purchase.

    Marginal over the price bands, plus a flat surcharge on the whole price when
    the buyer already owns a primary residence.
    """
    table = reference.stamp_duty_table(year)
    if table is None:
        return 0.0
    price = max(0.0, price)
    tax = progressive_tax(price, table.bands)
    if additional_property:
        tax += price * table.additional_property_surcharge
    return tax


def rental_income_tax(annual_rental_income: float, annual_other_income: float, year: int,
                      reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """
    Tax on rental profit stacked above other income.

    The property allowance comes off first; what remains fills whatever band
    capacity the player's salary has left, band by band.
    """
    table = reference.rental_income_table(year)
    if table is None:
        return 0.0
    taxable = max(0.0, annual_rental_income - table.property_allowance)
    return progressive_tax(taxable, table.bands, offset=annual_other_income)


def marginal_rate(annual_income: float, year: int,
                  reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """Rate of the bracket the next pound of income falls into."""
    brackets = reference.income_tax_table(year)
    if not brackets:
        return 0.0
    rate = 0.0
    for lower, bracket_rate in brackets:
        if annual_income >= lower:
            rate = bracket_rate
    return rate


@dataclass(slots=True)
class CapitalGainsLedger:
    """
    Realised gains for the current tax year.

    tax_paid is a running total across tax years; the other two fields reset at
    every settlement.
    """
    realized_gains: float = 0.0
    allowance_used: float = 0.0
    tax_paid: float = 0.0

    def record_gain(self, gain: float, year: int,
                    reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> None:
        """Add a sale's gain. Losses are not carried."""
        if gain <= 0:
            return
        self.realized_gains += gain
        table = reference.capital_gains_table(year)
        allowance = table.allowance if table is not None else 0.0
        self.allowance_used = min(self.realized_gains, allowance)

    def settle(self, year: int, reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
        """
        Charge the tax year's gains and reset the ledger.

        Returns:
            Tax due. The ledger resets whether or not anything was due.
        """
        tax = capital_gains_tax(self.realized_gains, year, reference)
        self.tax_paid += tax
        self.realized_gains = 0.0
        self.allowance_used = 0.0
        return tax

    def to_dict(self) -> Dict[str, float]:
        return {
            "realized_gains": self.realized_gains,
            "allowance_used": self.allowance_used,
            "tax_paid": self.tax_paid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "CapitalGainsLedger":
        return cls(
            realized_gains=float(data.get("realized_gains", 0.0)),
            allowance_used=float(data.get("allowance_used", 0.0)),
            tax_paid=float(data.get("tax_paid", 0.0)),
        )
