"""Merchant, city and reference tables for synthetic transactions"""

from datetime import datetime
from typing import Dict, List

from nova_sandbox.domain.models import TransactionType
from nova_sandbox.domain.rng import SeededRandom, to_base36
from nova_sandbox.utils.date_utils import epoch_ms

MERCHANTS: Dict[str, List[str]] = {
    "food": [
        "Whole Foods Market", "Trader Joes", "Starbucks", "Chipotle", "Panera Bread",
        "Local Cafe", "Pizza Hut", "Subway", "McDonalds", "Five Guys",
    ],
    "rent": ["Property Management Co", "Landlord Payment", "Apartment Complex"],
    "utilities": ["Electric Company", "Water & Sewer", "Internet Provider", "Gas Company", "Phone Service"],
    "salary": ["Employer Payroll", "Direct Deposit", "Contractor Payment"],
    "investments": [
        "Robinhood", "E-Trade", "Charles Schwab", "Vanguard", "Fidelity", "Coinbase", "Investment Return",
    ],
    "shopping": ["Amazon", "Target", "Walmart", "Best Buy", "Apple Store", "Nike", "Zara", "H&M", "IKEA"],
    "transport": ["Uber", "Lyft", "Gas Station", "Public Transit", "Parking Meter", "Car Service"],
    "entertainment": [
        "Movie Theater", "Concert Venue", "Streaming Service", "Gaming Store", "Bowling Alley", "Bar & Grill",
    ],
    "delivery": ["DoorDash", "Uber Eats", "Grubhub", "Instacart", "Amazon Fresh"],
    "subscriptions": ["Netflix", "Spotify", "Apple Music", "Adobe Creative", "Gym Membership", "Amazon Prime"],
    "education": ["University Bookstore", "Online Course", "Tuition Payment", "Study Materials"],
    "healthcare": ["Pharmacy", "Doctor Visit", "Dental Office", "Health Insurance", "CVS", "Walgreens"],
    "travel": ["Airline", "Hotel Booking", "Airbnb", "Travel Agency", "Car Rental"],
    "transfer": ["Internal Transfer", "P2P Payment", "Venmo", "Zelle"],
    "other": ["Miscellaneous", "ATM Withdrawal", "Fee", "Refund"],
}

CITIES = [
    "New York", "Los Angeles", "Chicago", "Houston", "Phoenix", "Philadelphia",
    "San Antonio", "San Diego", "Dallas", "San Jose", "Austin", "Seattle",
    "Denver", "Boston", "Portland", "Miami", "Atlanta", "San Francisco",
]


def merchant_for_category(category: str, rng: SeededRandom) -> str:
    merchants = MERCHANTS.get(category)
    if not merchants:
        return "Unknown Merchant"
    return rng.pick(merchants)


def random_city(rng: SeededRandom) -> str:
    return rng.pick(CITIES)


def transaction_reference(rng: SeededRandom, at: datetime) -> str:
    """
    Build a reference like TXN-LQ2K8M00-00A1B2.

    The stamp comes from the transaction time, not the wall clock, so a
    seeded run always yields the same references.
    """
    stamp = to_base36(epoch_ms(at))
    suffix = to_base36(int(rng.next() * 1_000_000)).rjust(6, "0")
    return f"TXN-{stamp}-{suffix}"


def describe(type: TransactionType, category: str, merchant: str) -> str:
    if type == TransactionType.CREDIT:
        if category == "salary":
            return f"Salary payment from {merchant}"
        if category == "investments":
            return f"Investment return from {merchant}"
        if category == "transfer":
            return f"Transfer from {merchant}"
        return f"Payment received from {merchant}"
    return f"Payment to {merchant}"
