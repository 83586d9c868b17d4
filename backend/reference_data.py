"""
UK Economic Reference Data (2005-2024)

Immutable yearly and monthly tables the engine reads from. Every lookup uses
"most recent entry on or before the target" and returns None when a series is
absent altogether, so callers can degrade to zero instead of raising.

Brackets and bands are stored as ordered (lower_threshold, rate) pairs with
fractional rates; the top bracket is unbounded.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

Brackets = List[Tuple[float, float]]

REGIONS: Tuple[str, ...] = (
    "London",
    "South East",
    "East of England",
    "South West",
    "West Midlands",
    "North West",
)

STOCK_SYMBOLS: Tuple[str, ...] = (
    "HSBC",
    "BP",
    "Vodafone",
    "Tesco",
    "Barclays",
    "AstraZeneca",
    "Unilever",
    "Diageo",
    "GSK",
    "Rio Tinto",
)

MONTH_NAMES: Tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def _series(start_year: int, values: List[float]) -> Dict[int, float]:
    return {start_year + offset: float(value) for offset, value in enumerate(values)}


# Year-end share prices (GBP per share)
STOCK_PRICES: Dict[str, Dict[int, float]] = {
    "HSBC": _series(2005, [940, 930, 850, 710, 720, 680, 520, 650, 670, 620,
                           540, 650, 770, 650, 600, 400, 450, 510, 620, 650]),
    "BP": _series(2005, [620, 570, 640, 520, 600, 470, 460, 430, 490, 420,
                         350, 500, 520, 500, 480, 260, 340, 480, 470, 460]),
    "Vodafone": _series(2005, [130, 150, 180, 140, 140, 170, 180, 160, 240, 230,
                               220, 200, 230, 160, 150, 130, 120, 90, 70, 75]),
    "Tesco": _series(2005, [330, 400, 470, 360, 430, 430, 400, 340, 340, 190,
                            150, 210, 210, 200, 250, 230, 290, 250, 290, 300]),
    "Barclays": _series(2005, [590, 730, 560, 150, 270, 260, 180, 260, 270, 240,
                               220, 230, 200, 160, 180, 150, 190, 160, 150, 190]),
    "AstraZeneca": _series(2005, [2800, 2900, 2100, 2700, 2900, 2900, 2900, 3000, 3600, 4600,
                                  4600, 4400, 5100, 5900, 7600, 7400, 8500, 11000, 10500, 12000]),
    "Unilever": _series(2005, [1500, 1400, 1700, 1500, 1900, 2000, 2100, 2400, 2500, 2600,
                               2900, 3200, 4100, 4200, 4400, 4400, 3900, 4000, 3800, 4200]),
    "Diageo": _series(2005, [800, 1000, 1100, 900, 1100, 1200, 1400, 1800, 2000, 1900,
                             1900, 2200, 2600, 2600, 3200, 2900, 3900, 3600, 2800, 2700]),
    "GSK": _series(2005, [1400, 1400, 1300, 1300, 1300, 1200, 1400, 1300, 1600, 1400,
                          1400, 1500, 1300, 1500, 1800, 1400, 1600, 1400, 1500, 1700]),
    "Rio Tinto": _series(2005, [2600, 2700, 5300, 1600, 3400, 4500, 3300, 3500, 3500, 3000,
                                2000, 3200, 3900, 3800, 4600, 5600, 5000, 5800, 5400, 5100]),
}

# Average house price per square metre (GBP)
HOUSE_PRICE_PER_SQM: Dict[str, Dict[int, float]] = {
    "London": _series(2005, [3600, 3800, 4200, 4000, 3900, 4100, 4300, 4500, 4800, 5200,
                             5600, 5900, 6000, 6100, 6000, 6200, 6500, 6800, 6700, 6600]),
    "South East": _series(2005, [2400, 2500, 2700, 2600, 2500, 2600, 2700, 2800, 3000, 3200,
                                 3400, 3600, 3700, 3800, 3800, 3900, 4200, 4400, 4300, 4200]),
    "East of England": _series(2005, [2200, 2300, 2500, 2400, 2300, 2400, 2500, 2600, 2700, 2900,
                                      3100, 3300, 3400, 3500, 3500, 3600, 3900, 4100, 4000, 3900]),
    "South West": _series(2005, [2000, 2100, 2200, 2100, 2000, 2100, 2200, 2300, 2400, 2500,
                                 2600, 2800, 2900, 3000, 3000, 3100, 3400, 3600, 3500, 3400]),
    "West Midlands": _series(2005, [1800, 1900, 2000, 1900, 1800, 1900, 1900, 2000, 2100, 2200,
                                    2300, 2400, 2500, 2600, 2600, 2700, 2900, 3100, 3000, 2900]),
    "North West": _series(2005, [1500, 1600, 1700, 1600, 1500, 1500, 1600, 1600, 1700, 1800,
                                 1900, 2000, 2100, 2200, 2200, 2300, 2500, 2700, 2600, 2500]),
}

# Monthly rent for a 50 m² one-bedroom flat (GBP)
RENT_PRICES: Dict[str, Dict[int, float]] = {
    "London": _series(2005, [900, 950, 1000, 1050, 1000, 1100, 1200, 1300, 1400, 1500,
                             1600, 1700, 1750, 1800, 1850, 1800, 1750, 1900, 2000, 2100]),
    "South East": _series(2005, [650, 680, 700, 720, 700, 750, 800, 850, 900, 950,
                                 1000, 1050, 1100, 1150, 1200, 1180, 1150, 1250, 1300, 1350]),
    "East of England": _series(2005, [600, 620, 650, 670, 650, 700, 750, 800, 850, 900,
                                      950, 1000, 1050, 1100, 1150, 1130, 1100, 1200, 1250, 1300]),
    "South West": _series(2005, [550, 580, 600, 620, 600, 650, 700, 750, 800, 850,
                                 900, 950, 1000, 1050, 1100, 1080, 1050, 1150, 1200, 1250]),
    "West Midlands": _series(2005, [500, 520, 550, 570, 550, 600, 650, 700, 750, 800,
                                    850, 900, 950, 1000, 1050, 1030, 1000, 1100, 1150, 1200]),
    "North West": _series(2005, [450, 470, 500, 520, 500, 550, 600, 650, 700, 750,
                                 800, 850, 900, 950, 1000, 980, 950, 1050, 1100, 1150]),
}

# Monthly consumer price index (2015 = 100), month keyed 0..11
INFLATION_INDEX: Dict[int, Dict[int, float]] = {
    2005: dict(enumerate([77.0, 77.2, 77.5, 77.8, 78.1, 78.1, 78.2, 78.4, 78.6, 78.7, 78.7, 78.9])),
    2006: dict(enumerate([78.5, 78.8, 78.9, 79.4, 79.9, 80.1, 80.0, 80.4, 80.5, 80.6, 80.8, 81.3])),
    2007: dict(enumerate([80.6, 81.0, 81.4, 81.6, 81.8, 82.0, 81.5, 81.8, 81.9, 82.3, 82.5, 83.0])),
    2008: dict(enumerate([82.4, 83.0, 83.4, 84.0, 84.6, 85.2, 85.1, 85.7, 86.1, 85.9, 85.8, 85.5])),
    2009: dict(enumerate([84.9, 85.6, 85.8, 86.0, 86.4, 86.7, 86.7, 87.0, 87.1, 87.2, 87.5, 88.0])),
    2010: dict(enumerate([87.8, 88.2, 88.7, 89.2, 89.4, 89.5, 89.3, 89.8, 89.8, 90.0, 90.3, 91.2])),
    2011: dict(enumerate([91.3, 92.0, 92.2, 93.2, 93.4, 93.3, 93.3, 93.8, 94.4, 94.5, 94.6, 95.1])),
    2012: dict(enumerate([94.6, 95.1, 95.4, 96.0, 95.9, 95.5, 95.6, 96.1, 96.5, 97.0, 97.2, 97.6])),
    2013: dict(enumerate([97.1, 97.8, 98.1, 98.3, 98.5, 98.3, 98.3, 98.7, 99.1, 99.1, 99.2, 99.6])),
    2014: dict(enumerate([99.0, 99.5, 99.7, 100.1, 100.0, 100.2, 99.9, 100.2, 100.3, 100.4, 100.1, 100.1])),
    2015: dict(enumerate([99.3, 99.5, 99.7, 99.9, 100.1, 100.2, 100.0, 100.3, 100.2, 100.3, 100.3, 100.3])),
    2016: dict(enumerate([99.5, 99.8, 100.2, 100.2, 100.4, 100.6, 100.6, 100.9, 101.1, 101.2, 101.4, 101.9])),
    2017: dict(enumerate([101.4, 102.1, 102.5, 102.9, 103.3, 103.3, 103.2, 103.8, 104.1, 104.2, 104.6, 104.9])),
    2018: dict(enumerate([104.4, 104.9, 105.0, 105.4, 105.8, 105.8, 105.8, 106.5, 106.6, 106.7, 107.0, 107.1])),
    2019: dict(enumerate([106.3, 106.8, 107.0, 107.6, 107.9, 107.9, 107.9, 108.4, 108.5, 108.3, 108.5, 108.5])),
    2020: dict(enumerate([108.2, 108.6, 108.6, 108.5, 108.5, 108.6, 109.1, 108.6, 109.1, 109.1, 108.9, 109.2])),
    2021: dict(enumerate([109.0, 109.1, 109.4, 110.1, 110.8, 111.3, 111.3, 112.1, 112.4, 113.6, 114.5, 115.1])),
    2022: dict(enumerate([114.9, 115.8, 117.1, 120.0, 120.8, 121.8, 122.5, 123.1, 123.8, 126.2, 126.7, 127.2])),
    2023: dict(enumerate([126.4, 127.9, 128.9, 130.4, 131.3, 131.5, 130.9, 131.3, 132.0, 132.0, 131.7, 132.2])),
    2024: dict(enumerate([131.5, 132.3, 133.0, 133.5, 133.9, 134.1, 133.8, 134.3, 134.2, 135.0, 135.1, 135.6])),
    2025: {0: 135.4},
}

# Bank of England base rate changes (percent), newest first
BASE_RATE_CHANGES: Tuple[Tuple[date, float], ...] = (
    (date(2025, 5, 8), 4.25),
    (date(2025, 2, 6), 4.50),
    (date(2024, 11, 7), 4.75),
    (date(2024, 8, 1), 5.00),
    (date(2023, 8, 3), 5.25),
    (date(2023, 6, 22), 5.00),
    (date(2023, 5, 11), 4.50),
    (date(2023, 3, 23), 4.25),
    (date(2023, 2, 2), 4.00),
    (date(2022, 12, 15), 3.50),
    (date(2022, 11, 3), 3.00),
    (date(2022, 9, 22), 2.25),
    (date(2022, 8, 4), 1.75),
    (date(2022, 6, 16), 1.25),
    (date(2022, 5, 5), 1.00),
    (date(2022, 3, 17), 0.75),
    (date(2022, 2, 3), 0.50),
    (date(2021, 12, 16), 0.25),
    (date(2020, 3, 19), 0.10),
    (date(2020, 3, 11), 0.25),
    (date(2018, 8, 2), 0.75),
    (date(2017, 11, 2), 0.50),
    (date(2016, 8, 4), 0.25),
    (date(2009, 3, 5), 0.50),
    (date(2009, 2, 5), 1.00),
    (date(2009, 1, 8), 1.50),
    (date(2008, 12, 4), 2.00),
    (date(2008, 11, 6), 3.00),
    (date(2008, 10, 8), 4.50),
    (date(2008, 4, 10), 5.00),
    (date(2008, 2, 7), 5.25),
    (date(2007, 12, 6), 5.50),
    (date(2007, 7, 5), 5.75),
    (date(2007, 5, 10), 5.50),
    (date(2007, 1, 11), 5.25),
    (date(2006, 11, 9), 5.00),
    (date(2006, 8, 3), 4.75),
    (date(2005, 8, 4), 4.50),
    (date(2004, 8, 5), 4.75),
)

INCOME_TAX_BRACKETS: Dict[int, Brackets] = {
    2005: [(0, 0.0), (4895, 0.10), (7185, 0.22), (37295, 0.40)],
    2010: [(0, 0.0), (6475, 0.20), (37400, 0.40), (150000, 0.50)],
    2015: [(0, 0.0), (10600, 0.20), (42385, 0.40), (150000, 0.45)],
    2020: [(0, 0.0), (12500, 0.20), (50000, 0.40), (150000, 0.45)],
    2024: [(0, 0.0), (12570, 0.20), (50270, 0.40), (125140, 0.45)],
}


@dataclass(frozen=True)
class CapitalGainsRates:
    allowance: float
    basic_rate: float
    higher_rate: float


CAPITAL_GAINS_TAX: Dict[int, CapitalGainsRates] = {
    2005: CapitalGainsRates(allowance=8500, basic_rate=0.20, higher_rate=0.40),
    2010: CapitalGainsRates(allowance=10100, basic_rate=0.18, higher_rate=0.28),
    2015: CapitalGainsRates(allowance=11100, basic_rate=0.18, higher_rate=0.28),
    2020: CapitalGainsRates(allowance=12300, basic_rate=0.10, higher_rate=0.20),
    2024: CapitalGainsRates(allowance=3000, basic_rate=0.10, higher_rate=0.20),
}


@dataclass(frozen=True)
class StampDutyTable:
    bands: Brackets
    additional_property_surcharge: float


STAMP_DUTY: Dict[int, StampDutyTable] = {
    2005: StampDutyTable([(0, 0.0), (120000, 0.01), (250000, 0.03), (500000, 0.04)], 0.03),
    2010: StampDutyTable([(0, 0.0), (125000, 0.01), (250000, 0.03), (500000, 0.04)], 0.03),
    2015: StampDutyTable([(0, 0.0), (125000, 0.02), (250000, 0.05), (925000, 0.10),
                          (1500000, 0.12)], 0.03),
    2020: StampDutyTable([(0, 0.0), (500000, 0.05), (925000, 0.10), (1500000, 0.12)], 0.03),
    2024: StampDutyTable([(0, 0.0), (250000, 0.05), (925000, 0.10), (1500000, 0.12)], 0.03),
}


@dataclass(frozen=True)
class RentalIncomeTable:
    property_allowance: float
    bands: Brackets


def _rental(allowance: float, personal: float, basic_top: float, higher_top: Optional[float],
            basic: float, higher: float = 0.40, additional: float = 0.40) -> RentalIncomeTable:
    bands: Brackets = [(0, 0.0), (personal, basic), (basic_top, higher)]
    if higher_top is not None:
        bands.append((higher_top, additional))
    return RentalIncomeTable(property_allowance=allowance, bands=bands)


RENTAL_INCOME_TAX: Dict[int, RentalIncomeTable] = {
    2005: _rental(0, 4745, 32400, None, 0.22),
    2006: _rental(0, 4895, 33300, None, 0.22),
    2007: _rental(0, 5225, 33300, None, 0.22),
    2008: _rental(0, 6035, 34800, 150000, 0.20),
    2009: _rental(0, 6475, 37400, 150000, 0.20),
    2010: _rental(0, 6475, 37400, 150000, 0.20, additional=0.50),
    2011: _rental(0, 7475, 35000, 150000, 0.20, additional=0.50),
    2012: _rental(0, 8105, 42475, 150000, 0.20, additional=0.50),
    2013: _rental(0, 9440, 41450, 150000, 0.20, additional=0.45),
    2014: _rental(0, 10000, 41865, 150000, 0.20, additional=0.45),
    2015: _rental(0, 10600, 42385, 150000, 0.20, additional=0.45),
    2016: _rental(0, 11000, 43000, 150000, 0.20, additional=0.45),
    2017: _rental(1000, 11500, 45000, 150000, 0.20, additional=0.45),
    2018: _rental(1000, 11850, 46350, 150000, 0.20, additional=0.45),
    2019: _rental(1000, 12500, 50000, 150000, 0.20, additional=0.45),
    2020: _rental(1000, 12500, 50000, 150000, 0.20, additional=0.45),
    2021: _rental(1000, 12570, 50270, 150000, 0.20, additional=0.45),
    2022: _rental(1000, 12570, 50270, 150000, 0.20, additional=0.45),
    2023: _rental(1000, 12570, 50270, 125140, 0.20, additional=0.45),
    2024: _rental(1000, 12570, 50270, 125140, 0.20, additional=0.45),
}

MEDIAN_SALARIES: Dict[int, float] = {
    2005: 33598.50, 2006: 35288.40, 2007: 36767.20, 2008: 37077.10, 2009: 35479.00,
    2010: 36379.20, 2011: 37363.80, 2012: 38511.10, 2013: 40232.70, 2014: 41584.00,
    2015: 42928.50, 2016: 44606.10, 2017: 46553.50, 2018: 48163.70, 2019: 49575.60,
    2020: 45329.10, 2021: 50522.70, 2022: 55862.10, 2023: 57821.90, 2024: 59160.00,
}

# London has the cheapest commuting thanks to public transport
TRANSPORT_COST_MULTIPLIER: Dict[str, float] = {
    "London": 0.8,
    "South East": 1.0,
    "East of England": 1.1,
    "South West": 1.2,
    "West Midlands": 1.1,
    "North West": 1.2,
}

# Regional earnings relative to the national median
REGIONAL_INCOME_FACTOR: Dict[str, float] = {
    "London": 1.30,
    "South East": 1.10,
    "East of England": 1.02,
    "South West": 0.95,
    "West Midlands": 0.92,
    "North West": 0.92,
}


def most_recent(table: Dict[int, object], year: int):
    """Return the entry for the largest key <= year, or None if there is none."""
    eligible = [key for key in table if key <= year]
    if not eligible:
        return None
    return table[max(eligible)]


@dataclass(frozen=True)
class ReferenceData:
    """
    Read-only bundle of every table the engine consumes.

    Supplied at engine construction so tests can inject trimmed or synthetic
    tables. None of the methods mutate state.
    """

    stock_prices: Dict[str, Dict[int, float]] = field(default_factory=lambda: STOCK_PRICES)
    house_price_per_sqm: Dict[str, Dict[int, float]] = field(default_factory=lambda: HOUSE_PRICE_PER_SQM)
    rent_prices: Dict[str, Dict[int, float]] = field(default_factory=lambda: RENT_PRICES)
    inflation_index: Dict[int, Dict[int, float]] = field(default_factory=lambda: INFLATION_INDEX)
    base_rate_changes: Tuple[Tuple[date, float], ...] = BASE_RATE_CHANGES
    income_tax_brackets: Dict[int, Brackets] = field(default_factory=lambda: INCOME_TAX_BRACKETS)
    capital_gains_tax: Dict[int, CapitalGainsRates] = field(default_factory=lambda: CAPITAL_GAINS_TAX)
    stamp_duty: Dict[int, StampDutyTable] = field(default_factory=lambda: STAMP_DUTY)
    rental_income_tax: Dict[int, RentalIncomeTable] = field(default_factory=lambda: RENTAL_INCOME_TAX)
    median_salaries: Dict[int, float] = field(default_factory=lambda: MEDIAN_SALARIES)
    transport_multiplier: Dict[str, float] = field(default_factory=lambda: TRANSPORT_COST_MULTIPLIER)
    regional_income_factor: Dict[str, float] = field(default_factory=lambda: REGIONAL_INCOME_FACTOR)

    @property
    def regions(self) -> List[str]:
        return list(self.house_price_per_sqm.keys())

    @property
    def stock_symbols(self) -> List[str]:
        return list(self.stock_prices.keys())

    # ------------------------------------------------------------------
    # Anchors
    # ------------------------------------------------------------------

    def stock_anchor(self, symbol: str, year: int) -> Optional[float]:
        series = self.stock_prices.get(symbol)
        if not series:
            return None
        return most_recent(series, year)

    def house_price_anchor(self, region: str, year: int) -> Optional[float]:
        series = self.house_price_per_sqm.get(region)
        if not series:
            return None
        return most_recent(series, year)

    def rent_anchor(self, region: str, year: int) -> Optional[float]:
        series = self.rent_prices.get(region)
        if not series:
            return None
        return most_recent(series, year)

    def national_average_price_per_sqm(self, year: int) -> Optional[float]:
        """Mean of the regional £/m² anchors that exist for the year."""
        anchors = [self.house_price_anchor(region, year) for region in self.regions]
        anchors = [value for value in anchors if value is not None]
        if not anchors:
            return None
        return sum(anchors) / len(anchors)

    # ------------------------------------------------------------------
    # Macro series
    # ------------------------------------------------------------------

    def inflation_index_at(self, year: int, month: int) -> Optional[float]:
        """CPI for (year, month), falling back to the latest earlier month."""
        for candidate_year in sorted((y for y in self.inflation_index if y <= year), reverse=True):
            months = self.inflation_index[candidate_year]
            limit = month if candidate_year == year else 11
            eligible = [m for m in months if m <= limit]
            if eligible:
                return months[max(eligible)]
        return None

    def base_rate(self, year: int, month: int) -> float:
        """Base rate in percent in force on the 1st of the given month; 0.0 with no recorded rates."""
        if not self.base_rate_changes:
            return 0.0
        target = date(year, month + 1, 1)
        for changed_on, rate in self.base_rate_changes:
            if changed_on <= target:
                return rate
        # Before the first recorded change the earliest rate applies
        return self.base_rate_changes[-1][1]

    def median_salary(self, year: int) -> Optional[float]:
        return most_recent(self.median_salaries, year)

    # ------------------------------------------------------------------
    # Tax tables
    # ------------------------------------------------------------------

    def income_tax_table(self, year: int) -> Optional[Brackets]:
        return most_recent(self.income_tax_brackets, year)

    def capital_gains_table(self, year: int) -> Optional[CapitalGainsRates]:
        return most_recent(self.capital_gains_tax, year)

    def stamp_duty_table(self, year: int) -> Optional[StampDutyTable]:
        return most_recent(self.stamp_duty, year)

    def rental_income_table(self, year: int) -> Optional[RentalIncomeTable]:
        return most_recent(self.rental_income_tax, year)


DEFAULT_REFERENCE_DATA = ReferenceData()
