"""Loan amortization - monthly payment, interest split and repayment schedule"""

import math
from typing import List

from nova_sandbox.domain.models import PaymentSplit, ScheduledPayment


def calculate_monthly_payment(principal: int, annual_rate: float, term_months: int) -> int:
    """
    Standard amortization payment, rounded up to the next cent.

    Args:
        principal: Amount borrowed in cents
        annual_rate: Nominal annual rate, e.g. 0.085
        term_months: Number of monthly payments

    Returns:
        Payment in cents; with a zero rate the principal is split evenly
    """
    if term_months <= 0:
        raise ValueError("term_months must be positive")
    monthly_rate = annual_rate / 12
    if monthly_rate == 0:
        return math.ceil(principal / term_months)
    growth = (1 + monthly_rate) ** term_months
    return math.ceil(principal * monthly_rate * growth / (growth - 1))


def split_payment(remaining: int, annual_rate: float, amount: int) -> PaymentSplit:
    """Interest accrues on the remaining balance first; the rest reduces principal"""
    interest = math.floor(remaining * annual_rate / 12)
    principal = amount - interest
    return PaymentSplit(interest=interest, principal=principal, remaining=max(0, remaining - principal))


def generate_amortization_schedule(principal: int, annual_rate: float, term_months: int) -> List[ScheduledPayment]:
    """
    Full schedule of payments until the balance reaches zero.

    The last payment is trimmed to what is actually owed.
    """
    payment = calculate_monthly_payment(principal, annual_rate, term_months)
    remaining = principal
    schedule = []
    number = 0
    while remaining > 0 and number < term_months:
        number += 1
        owed = remaining + math.floor(remaining * annual_rate / 12)
        split = split_payment(remaining, annual_rate, min(payment, owed))
        schedule.append(
            ScheduledPayment(
                number=number,
                payment=split.interest + split.principal,
                interest=split.interest,
                principal=split.principal,
                remaining=split.remaining,
            )
        )
        remaining = split.remaining
    return schedule
