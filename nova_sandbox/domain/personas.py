"""Persona catalog - behavioural archetypes that drive synthetic activity"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from nova_sandbox.domain.models import PortfolioType


class PersonaType(str, Enum):
    STUDENT = "student"
    INVESTOR = "investor"
    SPENDER = "spender"


CATEGORIES = [
    "food",
    "rent",
    "utilities",
    "salary",
    "investments",
    "shopping",
    "transport",
    "entertainment",
    "delivery",
    "subscriptions",
    "education",
    "healthcare",
    "travel",
    "transfer",
    "other",
]


@dataclass(frozen=True)
class CategoryWeight:
    category: str
    weight: float


@dataclass(frozen=True)
class IncomePattern:
    type: str  # recurring | sporadic
    frequency: str  # weekly | biweekly | monthly | irregular
    base_amount: int
    variance: float  # percent


@dataclass(frozen=True)
class PersonaConfig:
    """Static description of how a persona spends and earns"""

    name: PersonaType
    description: str
    min_per_week: int
    max_per_week: int
    average_amount: int
    amount_variance: float
    category_weights: List[CategoryWeight]
    risk_level: str
    allow_overdraft: bool
    income: IncomePattern
    weekend_multiplier: float

    @property
    def weekly_frequency(self) -> float:
        return (self.min_per_week + self.max_per_week) / 2

    def has_category(self, category: str) -> bool:
        return any(cw.category == category for cw in self.category_weights)


PERSONAS: Dict[PersonaType, PersonaConfig] = {
    PersonaType.STUDENT: PersonaConfig(
        name=PersonaType.STUDENT,
        description="College student with allowance and part-time income",
        min_per_week=8,
        max_per_week=15,
        average_amount=2_500,  # $25
        amount_variance=60,
        category_weights=[
            CategoryWeight("food", 30),
            CategoryWeight("transport", 20),
            CategoryWeight("entertainment", 15),
            CategoryWeight("shopping", 15),
            CategoryWeight("subscriptions", 10),
            CategoryWeight("education", 10),
        ],
        risk_level="LOW",
        allow_overdraft=False,
        income=IncomePattern(type="recurring", frequency="monthly", base_amount=150_000, variance=10),
        weekend_multiplier=1.3,
    ),
    PersonaType.INVESTOR: PersonaConfig(
        name=PersonaType.INVESTOR,
        description="Professional investor with irregular large transactions",
        min_per_week=3,
        max_per_week=8,
        average_amount=150_000,  # $1500
        amount_variance=80,
        category_weights=[
            CategoryWeight("investments", 40),
            CategoryWeight("food", 15),
            CategoryWeight("shopping", 15),
            CategoryWeight("travel", 15),
            CategoryWeight("utilities", 10),
            CategoryWeight("healthcare", 5),
        ],
        risk_level="MEDIUM",
        allow_overdraft=False,
        income=IncomePattern(type="sporadic", frequency="irregular", base_amount=800_000, variance=50),
        weekend_multiplier=0.4,
    ),
    PersonaType.SPENDER: PersonaConfig(
        name=PersonaType.SPENDER,
        description="High-frequency spender with regular income",
        min_per_week=20,
        max_per_week=35,
        average_amount=4_500,  # $45
        amount_variance=70,
        category_weights=[
            CategoryWeight("food", 25),
            CategoryWeight("shopping", 25),
            CategoryWeight("entertainment", 20),
            CategoryWeight("delivery", 15),
            CategoryWeight("transport", 10),
            CategoryWeight("subscriptions", 5),
        ],
        risk_level="HIGH",
        allow_overdraft=True,
        income=IncomePattern(type="recurring", frequency="biweekly", base_amount=250_000, variance=5),
        weekend_multiplier=1.5,
    ),
}

PERSONA_PORTFOLIO_TYPES: Dict[PersonaType, PortfolioType] = {
    PersonaType.STUDENT: PortfolioType.CONSERVATIVE,
    PersonaType.INVESTOR: PortfolioType.AGGRESSIVE,
    PersonaType.SPENDER: PortfolioType.BALANCED,
}


def get_persona(name: str) -> PersonaConfig:
    """Look up a persona by name; unknown names raise ValueError"""
    return PERSONAS[PersonaType(name)]
