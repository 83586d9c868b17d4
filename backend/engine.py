"""
Life Simulation Engine

Coordinates one player through daily ticks. Each tick advances the clock,
refreshes today's prices, charges daily living costs, runs yearly and monthly
settlement when a boundary is crossed, and rescores happiness.

Player actions are synchronous and go through the same lock as tick(), so an
action never interleaves with an in-flight tick.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

from amortization import Loan, LoanKind
from clock import NO_ROLLOVER, Rollover, RunState, SimClock
from config import CONFIG, SimulationConfig
from events import (
    DEFAULT_EVENTS,
    CashChange,
    ChildExpense,
    Divorce,
    EventContext,
    EventOutcome,
    ExpenseChange,
    HappinessModifier,
    IncomeChange,
    JobLoss,
    MarketCrash,
    PropertyConditionChange,
    RandomEvent,
    RandomEventSampler,
    sample_wellbeing_event,
)
from happiness import HappinessInputs, HappinessModel
from listings import Listing, generate_listings, market_rent, quality_multiplier
from player import INSURANCE_TYPES, Car, PlayerState, Property, StockHolding, Tenancy
from reference_data import DEFAULT_REFERENCE_DATA, MONTH_NAMES, ReferenceData
from taxes import monthly_income_tax, rental_income_tax, stamp_duty
from valuation import ValuationInterpolator, property_key, stock_key

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NEGATIVE_EQUITY = "negative_equity"
    NOT_OWNED = "not_owned"
    INVALID_REQUEST = "invalid_request"
    GAME_ENDED = "game_ended"


@dataclass(frozen=True)
class ActionResult:
    success: bool
    message: str
    amount: float = 0.0
    reason: Optional[RejectionReason] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "amount": self.amount,
            "reason": self.reason.value if self.reason else None,
        }


class SimulationEngine:
    """
    Owns the clock, the player, and every stochastic component.

    All randomness comes from one numpy Generator seeded at construction, so
    two engines built with the same seed and driven by the same calls produce
    identical histories regardless of wall-clock cadence.
    """

    def __init__(
        self,
        player: Optional[PlayerState] = None,
        reference: ReferenceData = DEFAULT_REFERENCE_DATA,
        config: Optional[SimulationConfig] = None,
        seed: Optional[int] = None,
        events: Tuple[RandomEvent, ...] = DEFAULT_EVENTS,
        clock: Optional[SimClock] = None,
    ):
        self.config = config or CONFIG
        self.reference = reference
        self.seed = seed
        self.rng = np.random.default_rng(seed)

        self.clock = clock or SimClock.from_config(self.config)
        self.valuation = ValuationInterpolator(reference, self.rng, self.config)
        self.event_sampler = RandomEventSampler(self.rng, events, self.config)
        self.happiness_model = HappinessModel(self.config)

        self.notifications: Deque[Dict[str, str]] = deque(maxlen=self.config.player.notification_limit)
        self.event_history: List[Dict[str, str]] = []
        self.prices: Dict[str, float] = {}
        self.listings: List[Listing] = []
        self.final_net_worth: Optional[float] = None
        self.ticks_processed = 0
        self._lock = threading.RLock()

        self.player = player if player is not None else self._new_player()
        if not self.player.monthly_expenses:
            self._reindex_expenses()

        self._refresh_prices()
        self._update_happiness(allow_events=False)
        self.listings = generate_listings(self.clock.year, self.rng, self.reference, self._regional_prices())

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _new_player(self) -> PlayerState:
        defaults = self.config.player
        player = PlayerState(
            cash=defaults.starting_cash,
            base_annual_salary=defaults.base_annual_salary,
            home_region=defaults.home_region,
            work_region=defaults.work_region,
            base_expenses=dict(defaults.base_expenses),
        )
        rent = market_rent(
            defaults.home_region,
            self.clock.year,
            defaults.starting_home_size_sqm,
            defaults.starting_home_condition,
            reference=self.reference,
        )
        player.tenancy = Tenancy(
            region=defaults.home_region,
            size_sqm=defaults.starting_home_size_sqm,
            condition=defaults.starting_home_condition,
            monthly_rent=rent,
            security_deposit=0.0,
            name=f"Starter flat in {defaults.home_region}",
        )
        return player

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _date_label(self) -> str:
        return f"{self.clock.day} {MONTH_NAMES[self.clock.month]} {self.clock.year}"

    def notify(self, message: str) -> None:
        self.notifications.append({"date": self._date_label(), "message": message})

    def _reject(self, reason: RejectionReason, message: str) -> ActionResult:
        logger.info(f"Action rejected ({reason.value}): {message}")
        self.notify(message)
        return ActionResult(success=False, message=message, reason=reason)

    def _accept(self, message: str, amount: float = 0.0, history_event: Optional[str] = None) -> ActionResult:
        self.notify(message)
        if history_event:
            self.event_history.append({"date": self._date_label(), "event": history_event, "message": message})
        return ActionResult(success=True, message=message, amount=amount)

    # ------------------------------------------------------------------
    # Prices and valuation
    # ------------------------------------------------------------------

    def _refresh_prices(self) -> None:
        day, month, year = self.clock.day, self.clock.month, self.clock.year
        for symbol in self.reference.stock_symbols:
            key = stock_key(symbol)
            self.prices[key] = self.valuation.price_of(key, day, month, year)
        for region in self.reference.regions:
            key = property_key(region)
            self.prices[key] = self.valuation.price_of(key, day, month, year)

    def _regional_prices(self) -> Dict[str, float]:
        return {region: self.prices.get(property_key(region), 0.0) for region in self.reference.regions}

    def price_of(self, asset_key: str, day: Optional[int] = None, month: Optional[int] = None,
                 year: Optional[int] = None) -> float:
        """
        Price for an asset key. Today's price comes from the per-tick cache;
        any other date is quoted from the anchors without jitter.
        """
        with self._lock:
            today = (self.clock.day, self.clock.month, self.clock.year)
            requested = (
                self.clock.day if day is None else day,
                self.clock.month if month is None else month,
                self.clock.year if year is None else year,
            )
            if requested == today:
                if asset_key not in self.prices:
                    self.prices[asset_key] = self.valuation.price_of(asset_key, *today)
                return self.prices[asset_key]
            return self.valuation.quote(asset_key, *requested)

    def stock_price(self, symbol: str) -> float:
        return self.price_of(stock_key(symbol))

    def property_value(self, prop: Property) -> float:
        return prop.value(self.price_of(property_key(prop.region)))

    def stocks_value(self, player: Optional[PlayerState] = None) -> float:
        player = player or self.player
        return sum(holding.shares * self.stock_price(symbol) for symbol, holding in player.stocks.items())

    def properties_value(self, player: Optional[PlayerState] = None) -> float:
        player = player or self.player
        return sum(self.property_value(prop) for prop in player.properties)

    def net_worth(self, player: Optional[PlayerState] = None) -> float:
        """Cash + savings + stocks + properties + car - outstanding loans, at today's prices."""
        with self._lock:
            player = player or self.player
            car_value = player.car.value if player.car else 0.0
            return (
                player.cash
                + player.savings
                + self.stocks_value(player)
                + self.properties_value(player)
                + car_value
                - player.total_debt
            )

    # ------------------------------------------------------------------
    # Income helpers
    # ------------------------------------------------------------------

    def salary_index(self, year: Optional[int] = None) -> float:
        year = self.clock.year if year is None else year
        start = self.reference.median_salary(self.config.time.start_year)
        current = self.reference.median_salary(year)
        if not start or not current:
            return 1.0
        return current / start

    def annual_salary(self) -> float:
        """Gross salary this year, before unemployment."""
        return self.player.base_annual_salary * self.salary_index() * self.player.income_multiplier

    def gross_monthly_income(self) -> float:
        if self.player.job_loss_months > 0:
            return 0.0
        return self.annual_salary() / 12.0

    def net_monthly_income(self) -> float:
        gross = self.gross_monthly_income()
        return gross - monthly_income_tax(gross, self.clock.year, self.reference)

    def monthly_rental_income(self) -> float:
        return sum(prop.monthly_rental_income for prop in self.player.properties if prop.is_rental)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def set_run_state(self, state: RunState) -> bool:
        with self._lock:
            changed = self.clock.set_run_state(state)
            if changed:
                logger.info(f"Run state set to {self.clock.run_state.value}")
            return changed

    def tick(self) -> Rollover:
        """
        Advance one simulated day.

        Returns:
            The rollover flags from the clock. A tick on an ended game does
            nothing and reports no rollover.
        """
        with self._lock:
            if self.clock.ended:
                return NO_ROLLOVER

            rollover = self.clock.advance()
            self._refresh_prices()
            self._deduct_daily_expenses()

            if rollover.year_changed:
                self._settle_year()
            if rollover.month_changed:
                self._settle_month()

            self._update_happiness(allow_events=True)
            self.ticks_processed += 1

            if rollover.ended:
                self._finish()
            return rollover

    def _deduct_daily_expenses(self) -> None:
        daily = self.player.monthly_living_costs / self.clock.days_in_current_month
        self.player.cash -= daily
        if self.player.cash < -10000 and self.clock.day == 1:
            self.notify("You're deeply in debt! Consider taking out a loan or selling assets.")

    def _finish(self) -> None:
        self.final_net_worth = self.net_worth()
        message = f"The game has ended at age {self.clock.age}. Final net worth: £{self.final_net_worth:,.2f}"
        logger.info(message)
        self.notify(message)

    # ------------------------------------------------------------------
    # Yearly settlement
    # ------------------------------------------------------------------

    def _reindex_expenses(self) -> None:
        """Scale base expenses by CPI since the start month; transport by region."""
        start = self.reference.inflation_index_at(self.config.time.start_year, self.config.time.start_month)
        current = self.reference.inflation_index_at(self.clock.year, self.clock.month)
        factor = current / start if start and current else 1.0
        transport_multiplier = self.reference.transport_multiplier.get(self.player.work_region, 1.0)

        expenses = {}
        for category, amount in self.player.base_expenses.items():
            value = amount * factor
            if category == "transport":
                value *= transport_multiplier
            expenses[category] = value
        self.player.monthly_expenses = expenses

    def _settle_year(self) -> None:
        self._reindex_expenses()

        tenancy = self.player.tenancy
        if tenancy is not None:
            new_rent = market_rent(tenancy.region, self.clock.year, tenancy.size_sqm, tenancy.condition,
                                   reference=self.reference)
            if new_rent > 0:
                tenancy.monthly_rent = new_rent

        for prop in self.player.properties:
            if prop.is_rental:
                prop.monthly_rental_income = market_rent(prop.region, self.clock.year, prop.size_sqm,
                                                         prop.condition, apply_discount=True,
                                                         reference=self.reference)

        if self.player.car is not None:
            self.player.car.value *= 1.0 - self.config.player.car_annual_depreciation

        logger.info(f"Yearly settlement {self.clock.year}: expenses re-indexed, "
                    f"salary index {self.salary_index():.3f}")

    # ------------------------------------------------------------------
    # Monthly settlement
    # ------------------------------------------------------------------

    def _settle_month(self) -> None:
        year, month = self.clock.year, self.clock.month
        player = self.player

        if month == self.config.time.tax_year_start_month:
            self._settle_capital_gains()

        # Rent
        if player.tenancy is not None:
            player.cash -= player.tenancy.monthly_rent

        # Rental income, taxed as the top slice above salary
        rental = self.monthly_rental_income()
        if rental > 0:
            rental_tax = rental_income_tax(rental * 12, self.gross_monthly_income() * 12, year,
                                           self.reference) / 12.0
            player.cash += rental - rental_tax

        # Salary
        if player.job_loss_months > 0:
            player.job_loss_months -= 1
            player.last_gross_monthly_income = 0.0
            player.last_income_tax = 0.0
            self.notify(f"You're still unemployed. {player.job_loss_months} months until you find a new job.")
        else:
            gross = self.gross_monthly_income()
            tax = monthly_income_tax(gross, year, self.reference)
            player.cash += gross - tax
            player.last_gross_monthly_income = gross
            player.last_income_tax = tax

        # Savings interest
        if player.savings > 0:
            savings_rate = self.reference.base_rate(year, month) / 100.0 * self.config.market.savings_rate_fraction
            player.savings += player.savings * savings_rate / 12.0

        # Loans
        for loan in list(player.loans):
            player.cash -= loan.service()
            if loan.retired:
                player.loans.remove(loan)
                logger.info(f"Loan {loan.loan_id} ({loan.kind.value}) retired")
                self.notify(f"You've paid off your {loan.kind.value} loan!")

        # At most one random event
        outcome = self.event_sampler.sample(self._event_context())
        if outcome is not None:
            self._apply_outcome(outcome)

        if self.config.debug.log_monthly_settlement:
            logger.debug(f"Monthly settlement {year}-{month + 1:02d}: cash £{player.cash:,.2f}, "
                         f"savings £{player.savings:,.2f}, loans {len(player.loans)}")

    def _settle_capital_gains(self) -> None:
        ledger = self.player.capital_gains
        gains = ledger.realized_gains
        tax = ledger.settle(self.clock.year, self.reference)
        self.player.cash -= tax
        logger.info(f"Tax year settlement {self.clock.year}: gains £{gains:,.2f}, CGT £{tax:,.2f}")
        if gains > 0:
            self.notify(f"Capital gains tax for the tax year: £{tax:,.2f} on gains of £{gains:,.2f}.")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _event_context(self) -> EventContext:
        return EventContext(
            player=self.player,
            age=self.clock.age,
            property_values={prop.property_id: self.property_value(prop) for prop in self.player.properties},
            monthly_income=self.gross_monthly_income(),
            config=self.config,
        )

    def _apply_outcome(self, outcome: EventOutcome) -> None:
        for effect in outcome.effects:
            self._apply_effect(effect, outcome)
        self.notify(outcome.message)
        self.event_history.append({
            "date": f"{MONTH_NAMES[self.clock.month]} {self.clock.year}",
            "event": outcome.name,
            "message": outcome.message,
        })

    def _apply_effect(self, effect, outcome: EventOutcome) -> None:
        player = self.player
        if isinstance(effect, CashChange):
            player.cash += effect.amount
        elif isinstance(effect, JobLoss):
            player.job_loss_months = max(player.job_loss_months, effect.months)
        elif isinstance(effect, MarketCrash):
            for symbol in self.reference.stock_symbols:
                key = stock_key(symbol)
                self.valuation.apply_shock(key, effect.price_factor, price=self.prices.get(key))
                if key in self.prices:
                    self.prices[key] *= effect.price_factor
        elif isinstance(effect, Divorce):
            keep = 1.0 - effect.asset_share_lost
            if player.cash > 0:
                player.cash *= keep
            player.savings *= keep
            player.married = False
        elif isinstance(effect, ChildExpense):
            player.children += 1
            player.extra_monthly_expenses += effect.monthly_amount
        elif isinstance(effect, PropertyConditionChange):
            prop = player.find_property(effect.property_id)
            if prop is not None:
                prop.adjust_condition(effect.delta)
        elif isinstance(effect, IncomeChange):
            player.income_multiplier *= effect.multiplier
        elif isinstance(effect, ExpenseChange):
            player.extra_monthly_expenses += effect.monthly_amount
        elif isinstance(effect, HappinessModifier):
            player.happiness.add_modifier(effect.value, self.clock.tick + effect.days, outcome.event_id)
        else:
            raise TypeError(f"Unknown event effect: {effect!r}")

    # ------------------------------------------------------------------
    # Happiness
    # ------------------------------------------------------------------

    def _happiness_inputs(self) -> HappinessInputs:
        player = self.player
        year = self.clock.year
        median = self.reference.median_salary(year)
        regional_factor = self.reference.regional_income_factor.get(player.home_region, 1.0)

        home = player.primary_residence
        if home is not None:
            home_condition = home.condition
        elif player.tenancy is not None:
            home_condition = player.tenancy.condition
        else:
            home_condition = None

        return HappinessInputs(
            annual_income=self.gross_monthly_income() * 12 + self.monthly_rental_income() * 12,
            regional_average_income=median * regional_factor if median else None,
            liquid_assets=player.cash + player.savings,
            monthly_outgoings=player.monthly_living_costs + player.monthly_rent + player.monthly_debt_service,
            total_debt=player.total_debt,
            home_condition=home_condition,
            owns_home=home is not None,
            commute_mismatch=player.home_region != player.work_region,
            unemployed=player.job_loss_months > 0,
            married=player.married,
            children=player.children,
            insurance=dict(player.insurance),
            age=self.clock.age,
            month=self.clock.month,
            local_price_per_sqm=self.prices.get(property_key(player.home_region)),
            national_price_per_sqm=self._national_price_per_sqm(),
        )

    def _national_price_per_sqm(self) -> Optional[float]:
        values = [value for value in self._regional_prices().values() if value > 0]
        if not values:
            return self.reference.national_average_price_per_sqm(self.clock.year)
        return sum(values) / len(values)

    def _update_happiness(self, allow_events: bool) -> None:
        state = self.happiness_model.recompute(self._happiness_inputs(), self.player.happiness, self.clock.tick)
        if not allow_events:
            return
        outcome = sample_wellbeing_event(state.total, self.gross_monthly_income(), self.rng, self.config)
        if outcome is not None:
            if self.config.debug.log_events:
                logger.info(f"Wellbeing event fired: {outcome.event_id}")
            self._apply_outcome(outcome)

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------

    def _ended_result(self) -> Optional[ActionResult]:
        if self.clock.ended:
            return self._reject(RejectionReason.GAME_ENDED, "The game has ended.")
        return None

    def buy_stock(self, symbol: str, shares: float) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if symbol not in self.reference.stock_prices or shares <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, f"Cannot buy {shares} shares of {symbol}.")
            price = self.stock_price(symbol)
            cost = price * shares
            if cost > self.player.cash:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS,
                                    f"You need £{cost:,.2f} to buy {shares:g} {symbol} shares.")

            holding = self.player.stocks.get(symbol)
            if holding is None:
                self.player.stocks[symbol] = StockHolding(shares=shares, avg_buy_price=price)
            else:
                total_shares = holding.shares + shares
                holding.avg_buy_price = (holding.shares * holding.avg_buy_price + cost) / total_shares
                holding.shares = total_shares
            self.player.cash -= cost
            return self._accept(f"Bought {shares:g} shares of {symbol} at £{price:,.2f}.", amount=cost)

    def sell_stock(self, symbol: str, shares: float) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if shares <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, "Share count must be positive.")
            holding = self.player.stocks.get(symbol)
            if holding is None or holding.shares < shares:
                return self._reject(RejectionReason.NOT_OWNED, f"You don't own {shares:g} shares of {symbol}.")

            price = self.stock_price(symbol)
            proceeds = price * shares
            gain = (price - holding.avg_buy_price) * shares
            self.player.capital_gains.record_gain(gain, self.clock.year, self.reference)

            holding.shares -= shares
            if holding.shares <= 1e-9:
                del self.player.stocks[symbol]
            self.player.cash += proceeds
            return self._accept(f"Sold {shares:g} shares of {symbol} at £{price:,.2f} (gain £{gain:,.2f}).",
                                amount=proceeds)

    def _find_listing(self, listing_id: str, kind: str) -> Optional[Listing]:
        for listing in self.listings:
            if listing.listing_id == listing_id and listing.kind == kind:
                return listing
        return None

    def buy_property(
        self,
        listing_id: Optional[str] = None,
        region: Optional[str] = None,
        size_sqm: Optional[float] = None,
        condition: int = 6,
        use_mortgage: bool = False,
        deposit_fraction: Optional[float] = None,
        as_rental: bool = False,
    ) -> ActionResult:
        """
        Buy a property from a listing, or at today's price for an explicit
        region and size.

        Stamp duty carries the additional-property surcharge when a primary
        residence is already owned. With a mortgage the cash needed is the
        deposit plus stamp duty; otherwise it is the full price plus stamp duty.
        """
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended

            listing = None
            if listing_id is not None:
                listing = self._find_listing(listing_id, "sale")
                if listing is None:
                    return self._reject(RejectionReason.INVALID_REQUEST, f"Listing {listing_id} is not available.")
                region, size_sqm, condition = listing.region, listing.size_sqm, listing.condition
                multiplier = listing.quality_multiplier
                price = listing.price
            else:
                if region not in self.reference.house_price_per_sqm or not size_sqm or size_sqm <= 0:
                    return self._reject(RejectionReason.INVALID_REQUEST, "A region and a positive size are required.")
                condition = max(1, min(10, int(condition)))
                multiplier = quality_multiplier(size_sqm, condition)
                price = self.price_of(property_key(region)) * size_sqm * multiplier

            if price <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, f"No price available in {region}.")

            year, month = self.clock.year, self.clock.month
            additional = self.player.primary_residence is not None
            duty = stamp_duty(price, year, additional_property=additional, reference=self.reference)

            loans = self.config.loans
            if use_mortgage:
                fraction = loans.default_deposit_fraction if deposit_fraction is None else deposit_fraction
                if not (loans.min_deposit_fraction <= fraction <= 1.0):
                    return self._reject(RejectionReason.INVALID_REQUEST,
                                        f"Deposit must be at least {loans.min_deposit_fraction:.0%} of the price.")
                deposit = price * fraction
            else:
                deposit = price
            needed = deposit + duty
            if needed > self.player.cash:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS,
                                    f"You need £{needed:,.2f} (including £{duty:,.2f} stamp duty).")

            prop = Property(
                property_id=self.player.allocate_id("property"),
                region=region,
                size_sqm=size_sqm,
                purchase_price=price,
                purchase_year=year,
                purchase_month=month,
                condition=condition,
                quality_multiplier=multiplier,
                is_rental=as_rental,
                monthly_rental_income=(
                    market_rent(region, year, size_sqm, condition, apply_discount=True, reference=self.reference)
                    if as_rental else 0.0
                ),
                is_primary_residence=not as_rental and not additional,
                name=listing.name if listing else f"{size_sqm:g} m² home in {region}",
            )
            self.player.cash -= needed
            self.player.properties.append(prop)

            if use_mortgage and price - deposit > 0:
                rate = self.reference.base_rate(year, month) / 100.0 + self.config.market.mortgage_margin
                loan = Loan.originate(
                    loan_id=self.player.allocate_id("loan"),
                    kind=LoanKind.MORTGAGE,
                    principal=price - deposit,
                    annual_rate=rate,
                    term_months=loans.default_mortgage_term_years * 12,
                    year=year,
                    month=month,
                    property_id=prop.property_id,
                )
                self.player.loans.append(loan)

            if prop.is_primary_residence:
                self.player.home_region = region
                if self.player.tenancy is not None:
                    self._close_tenancy()

            if listing is not None:
                self.listings.remove(listing)

            logger.info(f"Bought {prop.property_id} in {region} for £{price:,.2f} (stamp duty £{duty:,.2f})")
            return self._accept(f"Purchased {prop.name} for £{price:,.2f} (stamp duty £{duty:,.2f}).",
                                amount=needed, history_event="Property Purchase")

    def sell_property(self, property_id: str) -> ActionResult:
        """
        Sell at today's value. Refused when the proceeds cannot clear the
        mortgage plus early repayment charge; state is untouched in that case.
        """
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            prop = self.player.find_property(property_id)
            if prop is None:
                return self._reject(RejectionReason.NOT_OWNED, f"You don't own property {property_id}.")

            proceeds = self.property_value(prop)
            mortgage = self.player.mortgage_for(property_id)
            owed = 0.0
            if mortgage is not None:
                owed = mortgage.settlement_amount(
                    self.clock.year,
                    self.clock.month,
                    initial_rate=self.config.loans.early_repayment_initial_rate,
                    charge_years=self.config.loans.early_repayment_years,
                )
            if proceeds < owed:
                return self._reject(RejectionReason.NEGATIVE_EQUITY,
                                    f"Sale proceeds £{proceeds:,.2f} cannot cover £{owed:,.2f} owed on the mortgage.")

            if mortgage is not None:
                self.player.loans.remove(mortgage)
            self.player.properties.remove(prop)
            self.player.cash += proceeds - owed
            gain = proceeds - prop.purchase_price
            self.player.capital_gains.record_gain(gain, self.clock.year, self.reference)

            logger.info(f"Sold {property_id} for £{proceeds:,.2f} (mortgage settled £{owed:,.2f})")
            return self._accept(f"Sold {prop.name} for £{proceeds:,.2f}.", amount=proceeds - owed,
                                history_event="Property Sale")

    def rent_home(self, listing_id: Optional[str] = None, region: Optional[str] = None,
                  size_sqm: float = 50.0, condition: int = 6) -> ActionResult:
        """Move into a rented home; three months' rent is held as security deposit."""
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended

            listing = None
            if listing_id is not None:
                listing = self._find_listing(listing_id, "rent")
                if listing is None:
                    return self._reject(RejectionReason.INVALID_REQUEST, f"Listing {listing_id} is not available.")
                region, size_sqm, condition = listing.region, listing.size_sqm, listing.condition
                rent = listing.monthly_rent
            else:
                if region not in self.reference.rent_prices or size_sqm <= 0:
                    return self._reject(RejectionReason.INVALID_REQUEST, "A region and a positive size are required.")
                condition = max(1, min(10, int(condition)))
                rent = market_rent(region, self.clock.year, size_sqm, condition, reference=self.reference)

            deposit = rent * self.config.loans.security_deposit_months
            refund = self.player.tenancy.security_deposit if self.player.tenancy else 0.0
            if deposit > self.player.cash + refund:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS,
                                    f"You need £{deposit:,.2f} as a security deposit.")

            if self.player.tenancy is not None:
                self._close_tenancy()
            self.player.cash -= deposit
            self.player.tenancy = Tenancy(
                region=region,
                size_sqm=size_sqm,
                condition=condition,
                monthly_rent=rent,
                security_deposit=deposit,
                name=listing.name if listing else f"{size_sqm:g} m² rental in {region}",
            )
            self.player.home_region = region
            if listing is not None:
                self.listings.remove(listing)
            return self._accept(f"Rented {self.player.tenancy.name} for £{rent:,.2f} per month.", amount=deposit,
                                history_event="Tenancy")

    def _close_tenancy(self) -> float:
        tenancy = self.player.tenancy
        self.player.tenancy = None
        self.player.cash += tenancy.security_deposit
        return tenancy.security_deposit

    def end_tenancy(self) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if self.player.tenancy is None:
                return self._reject(RejectionReason.NOT_OWNED, "You are not renting a home.")
            refund = self._close_tenancy()
            return self._accept(f"Tenancy ended. £{refund:,.2f} deposit returned.", amount=refund)

    def deposit(self, amount: float) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if amount <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, "Deposit amount must be positive.")
            if amount > self.player.cash:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS, f"You don't have £{amount:,.2f} in cash.")
            self.player.cash -= amount
            self.player.savings += amount
            return self._accept(f"Deposited £{amount:,.2f} into savings.", amount=amount)

    def withdraw(self, amount: float) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if amount <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, "Withdrawal amount must be positive.")
            if amount > self.player.savings:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS,
                                    f"You don't have enough savings to withdraw £{amount:,.2f}.")
            self.player.savings -= amount
            self.player.cash += amount
            return self._accept(f"Withdrew £{amount:,.2f} from savings.", amount=amount)

    def take_loan(self, amount: float, term_months: Optional[int] = None,
                  kind: LoanKind = LoanKind.PERSONAL) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            term = self.config.player.personal_loan_term_months if term_months is None else term_months
            if amount <= 0 or term <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, "Loan amount and term must be positive.")
            year, month = self.clock.year, self.clock.month
            rate = self.reference.base_rate(year, month) / 100.0 + self.config.market.personal_loan_margin
            loan = Loan.originate(self.player.allocate_id("loan"), LoanKind(kind), amount, rate, term, year, month)
            self.player.loans.append(loan)
            self.player.cash += amount
            return self._accept(
                f"Took out a {loan.kind.value} loan for £{amount:,.2f} at {rate:.2%} "
                f"(£{loan.monthly_payment:,.2f}/month).",
                amount=amount,
                history_event="Loan",
            )

    def marry(self) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if self.player.married:
                return self._reject(RejectionReason.INVALID_REQUEST, "You're already married!")
            self.player.married = True
            spouse_assets = self.net_monthly_income() * 12
            self.player.cash += spouse_assets
            self.player.happiness.add_modifier(10.0, self.clock.tick + 90, "marriage")
            return self._accept(f"Congratulations on your marriage! Your spouse brings £{spouse_assets:,.2f}.",
                                amount=spouse_assets, history_event="Marriage")

    def buy_insurance(self, kind: str, cost: Optional[float] = None) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if kind not in INSURANCE_TYPES:
                return self._reject(RejectionReason.INVALID_REQUEST, f"Unknown insurance type: {kind}.")
            if self.player.insurance.get(kind):
                return self._reject(RejectionReason.INVALID_REQUEST, f"You already have {kind} insurance.")
            premium = self.config.player.insurance_premiums.get(kind, 0.0) if cost is None else cost
            if premium > self.player.cash:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS,
                                    f"You don't have enough cash to buy {kind} insurance.")
            self.player.cash -= premium
            self.player.insurance[kind] = True
            return self._accept(f"Purchased {kind} insurance for £{premium:,.2f}.", amount=premium)

    def cancel_insurance(self, kind: str) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if not self.player.insurance.get(kind):
                return self._reject(RejectionReason.NOT_OWNED, f"You don't have {kind} insurance.")
            self.player.insurance[kind] = False
            return self._accept(f"Cancelled your {kind} insurance.")

    def buy_car(self, name: str, price: float) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            if price <= 0:
                return self._reject(RejectionReason.INVALID_REQUEST, "Car price must be positive.")
            trade_in = self.player.car.value if self.player.car else 0.0
            if price > self.player.cash + trade_in:
                return self._reject(RejectionReason.INSUFFICIENT_FUNDS, f"You don't have enough cash to buy {name}.")
            self.player.cash += trade_in - price
            self.player.car = Car(name=name, purchase_price=price, purchase_year=self.clock.year, value=price)
            return self._accept(f"Bought a {name} for £{price:,.2f}.", amount=price, history_event="Car Purchase")

    def sell_car(self) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            car = self.player.car
            if car is None:
                return self._reject(RejectionReason.NOT_OWNED, "You don't have a car to sell.")
            self.player.cash += car.value
            self.player.car = None
            return self._accept(f"Sold your {car.name} for £{car.value:,.2f}.", amount=car.value,
                                history_event="Car Sale")

    def refresh_listings(self) -> ActionResult:
        with self._lock:
            ended = self._ended_result()
            if ended:
                return ended
            self.listings = generate_listings(self.clock.year, self.rng, self.reference, self._regional_prices())
            return ActionResult(success=True, message=f"{len(self.listings)} listings available.")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def current_snapshot(self) -> Dict[str, object]:
        """Read-only view for the UI and the exporter."""
        with self._lock:
            player = self.player
            return {
                "clock": self.clock.to_dict(),
                "date": self._date_label(),
                "tick": self.ticks_processed,
                "cash": player.cash,
                "savings": player.savings,
                "stocks_value": self.stocks_value(),
                "properties_value": self.properties_value(),
                "total_debt": player.total_debt,
                "net_worth": self.net_worth(),
                "final_net_worth": self.final_net_worth,
                "gross_monthly_income": self.gross_monthly_income(),
                "monthly_expenses": dict(player.monthly_expenses),
                "monthly_rent": player.monthly_rent,
                "monthly_rental_income": self.monthly_rental_income(),
                "base_rate": self.reference.base_rate(self.clock.year, self.clock.month),
                "happiness": player.happiness.to_dict(),
                "prices": dict(self.prices),
                "player": player.to_dict(),
                "listings": [listing.to_dict() for listing in self.listings],
                "notifications": list(self.notifications),
                "event_history": list(self.event_history),
            }

    def save_state(self) -> Dict[str, object]:
        """Serializable state for the persistence collaborator."""
        with self._lock:
            return {
                "clock": self.clock.to_dict(),
                "player": self.player.to_dict(),
                "price_states": self.valuation.snapshot(),
                "event_history": list(self.event_history),
                "final_net_worth": self.final_net_worth,
            }

    @classmethod
    def from_saved_state(cls, data: Dict[str, object], reference: ReferenceData = DEFAULT_REFERENCE_DATA,
                         config: Optional[SimulationConfig] = None, seed: Optional[int] = None) -> "SimulationEngine":
        engine = cls(
            player=PlayerState.from_dict(data["player"]),
            reference=reference,
            config=config,
            seed=seed,
            clock=SimClock.from_dict(data["clock"]),
        )
        engine.valuation.restore(data.get("price_states", {}))
        engine._refresh_prices()
        engine.event_history = list(data.get("event_history", []))
        engine.final_net_worth = data.get("final_net_worth")
        return engine
