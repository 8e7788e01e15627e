import unittest
from decimal import Decimal

from app.domain.sessions.pricing import (
    affordable_seconds,
    charge_between,
    cost_for,
    minimum_balance,
    payee_share,
    to_money,
)


class TestCostFor(unittest.TestCase):

    def test_rounds_half_up_to_paise(self):
        self.assertEqual(cost_for(10, 1), Decimal("0.17"))
        self.assertEqual(cost_for(10, 2), Decimal("0.33"))
        self.assertEqual(cost_for(10, 60), Decimal("10.00"))

    def test_zero_or_negative_seconds_cost_nothing(self):
        self.assertEqual(cost_for(10, 0), Decimal("0.00"))
        self.assertEqual(cost_for(10, -5), Decimal("0.00"))

    def test_accepts_decimal_and_string_rates(self):
        self.assertEqual(cost_for(Decimal("12.50"), 30), Decimal("6.25"))
        self.assertEqual(cost_for("12.50", 30), Decimal("6.25"))


class TestChargeBetween(unittest.TestCase):

    def test_one_second_ticks_add_up_to_the_minute_price(self):
        total = Decimal("0.00")
        for second in range(60):
            total += charge_between(10, second, second + 1, 0.10).amount
        self.assertEqual(total, Decimal("10.00"))

    def test_commission_split_is_cumulative(self):
        earned = Decimal("0.00")
        kept = Decimal("0.00")
        for second in range(0, 60, 5):
            charge = charge_between(7, second, second + 5, 0.10)
            earned += charge.payee_amount
            kept += charge.commission
        self.assertEqual(earned, payee_share(cost_for(7, 60), 0.10))
        self.assertEqual(earned + kept, Decimal("7.00"))

    def test_payee_share_rounds_down(self):
        self.assertEqual(payee_share(Decimal("0.17"), 0.10), Decimal("0.15"))

    def test_no_progress_charges_nothing(self):
        charge = charge_between(10, 30, 30, 0.10)
        self.assertEqual(charge.amount, Decimal("0.00"))
        self.assertEqual(charge.payee_amount, Decimal("0.00"))


class TestBalanceHelpers(unittest.TestCase):

    def test_affordable_seconds_stops_at_balance(self):
        self.assertEqual(affordable_seconds(10, 0, 60, Decimal("5.00")), 30)

    def test_affordable_seconds_with_nothing_left(self):
        self.assertEqual(affordable_seconds(10, 12, 60, Decimal("0.00")), 12)

    def test_affordable_seconds_when_everything_fits(self):
        self.assertEqual(affordable_seconds(10, 0, 45, Decimal("100.00")), 45)

    def test_minimum_balance(self):
        self.assertEqual(minimum_balance(10), Decimal("10.00"))
        self.assertEqual(minimum_balance("12.5", 2), Decimal("25.00"))

    def test_to_money(self):
        self.assertEqual(to_money(1), Decimal("1.00"))
        self.assertEqual(to_money("2.345"), Decimal("2.35"))


if __name__ == "__main__":
    unittest.main()
