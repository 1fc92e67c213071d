"""Synthetic transaction generation for personas - pure, seeded, no persistence"""

from datetime import date, datetime, time
from typing import List, Optional, Tuple

from nova_sandbox.config import SimulationConfig
from nova_sandbox.domain.merchants import describe, merchant_for_category, random_city, transaction_reference
from nova_sandbox.domain.models import GeneratedTransaction, TransactionType
from nova_sandbox.domain.personas import PersonaConfig
from nova_sandbox.domain.rng import SeededRandom, round_half_up
from nova_sandbox.utils.date_utils import generate_date_range, is_weekend, last_day_of_month

INCOME_TIME = time(9, 0)
MIN_EXPENSE_AMOUNT = 100
HOURS_PER_WEEK = 168


def is_payday(day: date, frequency: str) -> bool:
    """
    Payday rule per income frequency.

    monthly: last day of month. biweekly: 15th and last day. weekly: Friday.
    """
    last_day = last_day_of_month(day)
    if frequency == "monthly":
        return day.day == last_day
    if frequency == "biweekly":
        return day.day == 15 or day.day == last_day
    if frequency == "weekly":
        return day.weekday() == 4
    return False


class TransactionGenerator:
    """Produces persona-driven transaction streams from a single seeded source"""

    def __init__(self, rng: SeededRandom):
        self.rng = rng

    def generate_income(self, persona: PersonaConfig, day: date) -> Optional[GeneratedTransaction]:
        """Emit at most one income credit for the given day"""
        pattern = persona.income
        if pattern.type == "recurring":
            should_generate = is_payday(day, pattern.frequency)
        elif pattern.type == "sporadic":
            should_generate = self.rng.next_boolean(0.05 if is_weekend(day) else 0.15)
        else:
            should_generate = False

        if not should_generate:
            return None

        created_at = datetime.combine(day, INCOME_TIME)
        return self._build(TransactionType.CREDIT, "salary", pattern.base_amount, pattern.variance, created_at)

    def generate_expenses(
        self,
        persona: PersonaConfig,
        day: date,
        balance: int,
    ) -> Tuple[List[GeneratedTransaction], int]:
        """
        Emit the day's expenses, skipping any that would overdraft a persona
        without overdraft. Returns the expenses and the balance after them.
        """
        daily = persona.weekly_frequency / 7
        if is_weekend(day):
            daily *= persona.weekend_multiplier
        count = max(0, round_half_up(daily + (self.rng.next() - 0.5) * 2))

        expenses: List[GeneratedTransaction] = []
        for _ in range(count):
            category = self.rng.pick_weighted(persona.category_weights, lambda cw: cw.weight).category
            amount = max(MIN_EXPENSE_AMOUNT, self.rng.next_with_variance(persona.average_amount, persona.amount_variance))

            if not persona.allow_overdraft and balance - amount < 0:
                continue

            merchant = merchant_for_category(category, self.rng)
            hour = self.rng.next_int(6, 23)
            minute = self.rng.next_int(0, 59)
            created_at = datetime.combine(day, time(hour, minute))
            location = random_city(self.rng)
            expenses.append(
                GeneratedTransaction(
                    type=TransactionType.DEBIT,
                    amount=amount,
                    category=category,
                    merchant=merchant,
                    description=describe(TransactionType.DEBIT, category, merchant),
                    location=location,
                    reference=transaction_reference(self.rng, created_at),
                    created_at=created_at,
                )
            )
            balance -= amount

        return expenses, balance

    def generate_for_period(
        self,
        persona: PersonaConfig,
        start: date,
        end: date,
        starting_balance: int = 0,
    ) -> List[GeneratedTransaction]:
        """
        Generate a full history, day by day, income before expenses.

        The running balance is threaded through every day so overdraft
        decisions see the effect of earlier transactions.
        """
        transactions: List[GeneratedTransaction] = []
        balance = starting_balance

        for day in generate_date_range(start, end):
            income = self.generate_income(persona, day)
            if income:
                transactions.append(income)
                balance += income.amount

            expenses, balance = self.generate_expenses(persona, day, balance)
            transactions.extend(expenses)

        return transactions

    def generate_live(
        self,
        persona: PersonaConfig,
        now: datetime,
        config: SimulationConfig,
        include_income: bool,
    ) -> List[GeneratedTransaction]:
        """
        Generate the activity of one account for a single cycle "as of now".

        include_income should only be true on the first cycle of a day so
        payday credits land once.
        """
        transactions: List[GeneratedTransaction] = []

        if include_income:
            income = self.generate_income(persona, now.date())
            if income:
                income.created_at = now
                transactions.append(income)

        multiplier = config.activity_multiplier(now.hour)
        if is_weekend(now.date()):
            multiplier *= config.weekend_multiplier * persona.weekend_multiplier

        hourly = persona.weekly_frequency / HOURS_PER_WEEK
        count = round_half_up(hourly * multiplier + (self.rng.next() - 0.5) * 2)

        for _ in range(max(0, count)):
            category = self.rng.pick_weighted(persona.category_weights, lambda cw: cw.weight).category
            amount = max(MIN_EXPENSE_AMOUNT, self.rng.next_with_variance(persona.average_amount, persona.amount_variance))
            transactions.append(self._finish(TransactionType.DEBIT, category, amount, now))

        return transactions

    def _build(
        self,
        type: TransactionType,
        category: str,
        base_amount: int,
        variance: float,
        created_at: datetime,
    ) -> GeneratedTransaction:
        amount = self.rng.next_with_variance(base_amount, variance)
        return self._finish(type, category, amount, created_at)

    def _finish(self, type: TransactionType, category: str, amount: int, created_at: datetime) -> GeneratedTransaction:
        merchant = merchant_for_category(category, self.rng)
        location = random_city(self.rng)
        return GeneratedTransaction(
            type=type,
            amount=amount,
            category=category,
            merchant=merchant,
            description=describe(type, category, merchant),
            location=location,
            reference=transaction_reference(self.rng, created_at),
            created_at=created_at,
        )

