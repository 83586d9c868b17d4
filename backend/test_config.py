"""
Configuration validation tests
"""

from dataclasses import replace

import pytest

from config import CONFIG, HappinessConfig, LoanConfig, MarketConfig, SimulationConfig, TimeConfig


class TestDefaults:
    def test_default_config_is_valid(self):
        config = SimulationConfig()
        assert config.time.start_year == 2005
        assert config.time.end_age == 45
        assert abs(sum(config.happiness.weights.values()) - 1.0) < 1e-9

    def test_global_instance(self):
        assert CONFIG.player.starting_cash == 15000.0
        assert CONFIG.loans.security_deposit_months == 3


class TestValidation:
    def test_start_month_out_of_range(self):
        with pytest.raises(ValueError):
            SimulationConfig(time=TimeConfig(start_month=12))

    def test_end_age_must_exceed_start_age(self):
        with pytest.raises(ValueError):
            SimulationConfig(time=TimeConfig(start_age=45, end_age=45))

    def test_cadence_must_be_positive(self):
        with pytest.raises(ValueError):
            SimulationConfig(time=TimeConfig(fast_seconds_per_month=0))

    def test_crash_factors_ordered(self):
        with pytest.raises(ValueError):
            SimulationConfig(market=MarketConfig(crash_min_factor=0.9, crash_max_factor=0.5))

    def test_negative_volatility(self):
        with pytest.raises(ValueError):
            SimulationConfig(market=MarketConfig(daily_volatility=-0.1))

    def test_deposit_fraction_range(self):
        with pytest.raises(ValueError):
            SimulationConfig(loans=LoanConfig(min_deposit_fraction=1.5))

    def test_weights_must_sum_to_one(self):
        weights = dict(HappinessConfig().weights, financial=0.5)
        with pytest.raises(ValueError):
            SimulationConfig(happiness=HappinessConfig(weights=weights))

    def test_seasonal_modifiers_cover_year(self):
        with pytest.raises(ValueError):
            SimulationConfig(happiness=HappinessConfig(seasonal_modifiers=(0.0,) * 11))

    def test_replace_revalidates(self):
        with pytest.raises(ValueError):
            replace(CONFIG, time=replace(CONFIG.time, tax_year_start_month=-1))
