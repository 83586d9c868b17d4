"""
Housing Market Listings

Generates one property for sale and one home to rent per region from the
current year's regional anchors. Size and condition vary randomly around a
handful of archetypes; price scales sub-linearly with size and exponentially
with condition.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from reference_data import DEFAULT_REFERENCE_DATA, ReferenceData

REFERENCE_SIZE_SQM = 50.0

# (name, base size m², base condition)
SALE_ARCHETYPES: Tuple[Tuple[str, float, int], ...] = (
    ("Studio Apartment", 35, 6),
    ("One Bedroom Flat", 50, 5),
    ("Two Bedroom Apartment", 70, 6),
    ("Three Bedroom House", 100, 7),
    ("Four Bedroom House", 130, 8),
    ("Fixer-Upper Studio", 35, 3),
    ("Renovation Project Flat", 50, 4),
    ("Distressed Property", 70, 2),
)

RENTAL_ARCHETYPES: Tuple[Tuple[str, float, int], ...] = (
    ("Studio Apartment", 35, 6),
    ("One Bedroom Flat", 50, 5),
    ("Two Bedroom Apartment", 70, 7),
    ("Basic Studio", 35, 4),
    ("Budget Flat", 50, 3),
)


@dataclass(slots=True)
class Listing:
    listing_id: str
    kind: str  # "sale" or "rent"
    name: str
    region: str
    size_sqm: float
    condition: int
    price: float = 0.0
    monthly_rent: float = 0.0
    quality_multiplier: float = 1.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "listing_id": self.listing_id,
            "kind": self.kind,
            "name": self.name,
            "region": self.region,
            "size_sqm": self.size_sqm,
            "condition": self.condition,
            "price": self.price,
            "monthly_rent": self.monthly_rent,
            "quality_multiplier": self.quality_multiplier,
        }


def quality_multiplier(size_sqm: float, condition: int) -> float:
    """(size / 50)^0.8 x 1.15^(condition - 6)."""
    return (size_sqm / REFERENCE_SIZE_SQM) ** 0.8 * 1.15 ** (condition - 6)


def market_rent(region: str, year: int, size_sqm: float, condition: int,
                apply_discount: bool = False,
                reference: ReferenceData = DEFAULT_REFERENCE_DATA) -> float:
    """
    Monthly market rent for a home.

    Regional rent is quoted for 50 m²; each condition point away from 7 moves
    rent by 10%. Let properties take a 5% discount to find tenants.
    """
    base = reference.rent_anchor(region, year)
    if base is None:
        return 0.0
    rent = base * (size_sqm / REFERENCE_SIZE_SQM) * (1 + (condition - 7) * 0.1)
    rent = max(0.0, rent)
    if apply_discount:
        rent *= 0.95
    return round(rent)


def _vary_size(rng: np.random.Generator, base_size: float) -> float:
    return max(20.0, base_size + int(rng.integers(-10, 11)))


def _vary_condition(rng: np.random.Generator, base_condition: int) -> int:
    condition = max(1, min(10, base_condition + int(rng.integers(-1, 2))))
    return max(1, min(10, condition + int(rng.integers(-2, 2))))


def _name(rng: np.random.Generator, archetype: str, condition: int, region: str) -> str:
    adjectives = ["Charming", "Spacious", "Modern", "Lovely", "Cozy"]
    if condition <= 3:
        adjectives += ["Project", "As-Is", "Budget"]
    elif condition >= 8:
        adjectives += ["Pristine", "Luxury", "Executive"]
    adjective = adjectives[int(rng.integers(0, len(adjectives)))]
    return f"{adjective} {archetype} in {region}"


def generate_listings(year: int, rng: np.random.Generator,
                      reference: ReferenceData = DEFAULT_REFERENCE_DATA,
                      price_per_sqm: Optional[Dict[str, float]] = None) -> List[Listing]:
    """
    One sale listing and one rental listing per region.

    Args:
        year: Year whose anchors to use
        rng: Shared random generator
        reference: Reference tables
        price_per_sqm: Today's regional £/m², if the caller has it; otherwise
            the yearly anchor is used

    Returns:
        Listings with a positive price or rent.
    """
    listings: List[Listing] = []
    for region in reference.regions:
        sqm_price = (price_per_sqm or {}).get(region) or reference.house_price_anchor(region, year)
        if sqm_price:
            name, base_size, base_condition = SALE_ARCHETYPES[int(rng.integers(0, len(SALE_ARCHETYPES)))]
            size = _vary_size(rng, base_size)
            condition = _vary_condition(rng, base_condition)
            multiplier = quality_multiplier(size, condition)
            variation = 0.9 + rng.random() * 0.2
            price = round(sqm_price * size * multiplier * variation)
            if price > 0:
                listings.append(Listing(
                    listing_id=f"sale_{region}_{year}_{len(listings)}",
                    kind="sale",
                    name=_name(rng, name, condition, region),
                    region=region,
                    size_sqm=size,
                    condition=condition,
                    price=float(price),
                    quality_multiplier=multiplier,
                ))

        name, base_size, base_condition = RENTAL_ARCHETYPES[int(rng.integers(0, len(RENTAL_ARCHETYPES)))]
        size = _vary_size(rng, base_size)
        condition = _vary_condition(rng, base_condition)
        rent = market_rent(region, year, size, condition, reference=reference)
        if rent > 0:
            listings.append(Listing(
                listing_id=f"rent_{region}_{year}_{len(listings)}",
                kind="rent",
                name=_name(rng, name, condition, region),
                region=region,
                size_sqm=size,
                condition=condition,
                monthly_rent=float(rent),
            ))
    return listings
