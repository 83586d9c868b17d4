"""
Unit tests for the amortization calculator and Loan servicing
"""

import pytest

from amortization import Loan, LoanKind, early_repayment_charge, monthly_payment, remaining_principal


class TestMonthlyPayment:
    def test_annuity_formula(self):
        principal, rate, n = 200000.0, 0.05, 360
        r = rate / 12
        expected = principal * r * (1 + r) ** n / ((1 + r) ** n - 1)
        assert abs(monthly_payment(principal, rate, n) - expected) < 1e-9

    def test_known_value(self):
        # £200k over 25 years at 6% is about £1,288.60
        assert abs(monthly_payment(200000, 0.06, 300) - 1288.60) < 0.01

    def test_zero_rate_repays_evenly(self):
        assert abs(monthly_payment(12000, 0.0, 12) - 1000.0) < 1e-9


class TestRemainingPrincipal:
    @pytest.mark.parametrize("rate", [0.0, 0.035, 0.07])
    def test_endpoints(self, rate):
        assert abs(remaining_principal(150000, rate, 300, 0) - 150000) < 1e-6
        assert abs(remaining_principal(150000, rate, 300, 300)) < 1e-6

    def test_zero_after_term(self):
        assert remaining_principal(150000, 0.05, 300, 400) == 0.0

    def test_matches_step_simulation(self):
        principal, rate, n = 100000.0, 0.045, 240
        payment = monthly_payment(principal, rate, n)
        balance = principal
        for _ in range(60):
            balance -= payment - balance * rate / 12
        assert abs(remaining_principal(principal, rate, n, 60) - balance) < 1e-6

    def test_monotonically_decreasing(self):
        balances = [remaining_principal(80000, 0.05, 120, k) for k in range(121)]
        assert all(later <= earlier for earlier, later in zip(balances, balances[1:]))


class TestEarlyRepaymentCharge:
    def test_full_rate_at_origination(self):
        assert abs(early_repayment_charge(100000, 0) - 5000.0) < 1e-9

    def test_decays_linearly(self):
        assert abs(early_repayment_charge(100000, 30) - 2500.0) < 1e-9

    def test_never_negative(self):
        assert early_repayment_charge(100000, 60) == 0.0
        assert early_repayment_charge(100000, 200) == 0.0
        assert early_repayment_charge(-100, 0) == 0.0


class TestLoan:
    def test_service_reduces_balance(self):
        loan = Loan.originate("loan_1", LoanKind.PERSONAL, 10000.0, 0.06, 24, 2005, 0)
        paid = loan.service()

        assert abs(paid - loan.monthly_payment) < 1e-9
        interest = 10000.0 * 0.06 / 12
        assert abs(loan.remaining_principal - (10000.0 - (paid - interest))) < 1e-9
        assert loan.payments_made == 1

    def test_retires_after_term(self):
        loan = Loan.originate("loan_1", LoanKind.CAR, 6000.0, 0.08, 12, 2005, 0)
        total = sum(loan.service() for _ in range(12))

        assert loan.retired
        assert loan.service() == 0.0
        assert total > 6000.0

    def test_balance_tracks_closed_form(self):
        loan = Loan.originate("loan_1", LoanKind.MORTGAGE, 150000.0, 0.04, 300, 2005, 0)
        for _ in range(36):
            loan.service()
        assert abs(loan.remaining_principal - loan.scheduled_balance()) < 1e-4

    def test_settlement_includes_charge(self):
        loan = Loan.originate("loan_1", LoanKind.MORTGAGE, 100000.0, 0.05, 300, 2005, 0)
        # 12 months elapsed: charge is 5% x (1 - 12/60) = 4%
        expected = loan.remaining_principal * 1.04
        assert abs(loan.settlement_amount(2006, 0) - expected) < 1e-6

    def test_round_trip_through_dict(self):
        loan = Loan.originate("loan_9", LoanKind.MORTGAGE, 50000.0, 0.05, 120, 2010, 4, property_id="property_2")
        loan.service()
        assert Loan.from_dict(loan.to_dict()) == loan
