"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from typing import Callable, Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from nova_sandbox.api.main import create_app
from nova_sandbox.config import SimulationConfig, Settings
from nova_sandbox.domain.models import TransactionStatus
from nova_sandbox.infrastructure.database.models import Account, Base, Transaction, User
from nova_sandbox.infrastructure.database.repositories import AccountRepository, TransactionRepository, UserRepository
from nova_sandbox.infrastructure.database.session import get_db
from nova_sandbox.simulation.engine import SimulationEngine
from nova_sandbox.utils.clock import FixedClock


# Test database: one shared in-memory connection so the simulation's own
# sessions see the same data as the test session
TEST_DATABASE_URL = "sqlite://"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Wednesday afternoon, outside every payday rule
NOW = datetime(2024, 6, 12, 14, 0, 0)


class ManualTimer:
    """RepeatingTimer that only fires when the test says so"""

    def __init__(self):
        self.interval_seconds: Optional[float] = None
        self.callback: Optional[Callable[[], None]] = None
        self.cancelled = False

    def start(self, interval_seconds: float, callback: Callable[[], None]) -> None:
        self.interval_seconds = interval_seconds
        self.callback = callback

    def cancel(self) -> None:
        self.cancelled = True

    def tick(self) -> None:
        self.callback()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def sim_config() -> SimulationConfig:
    return SimulationConfig()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db: Session, clock: FixedClock):
    """Factory for users; created a year before NOW unless told otherwise"""
    counter = {"n": 0}

    def _make(persona: str = "student", name: str = "Jane Doe", created_at: Optional[datetime] = None) -> User:
        counter["n"] += 1
        user = UserRepository(db).create(
            name=name,
            email=f"user{counter['n']}@example.com",
            persona=persona,
            created_at=created_at or clock.now().replace(year=clock.now().year - 1),
        )
        db.commit()
        return user

    return _make


@pytest.fixture
def make_account(db: Session, clock: FixedClock, make_user):
    """
    Factory for accounts. A non-zero opening balance is booked as a posted
    deposit so balance always equals the sum of the account's transactions.
    """

    def _make(
        balance: int = 100000,
        user: Optional[User] = None,
        persona: str = "student",
        daily_limit: int = 500000,
        overdraft_enabled: bool = False,
        overdraft_limit: int = 0,
        is_frozen: bool = False,
    ) -> Account:
        user = user or make_user(persona=persona)
        accounts = AccountRepository(db)
        account = accounts.create(
            user,
            daily_limit=daily_limit,
            overdraft_enabled=overdraft_enabled,
            overdraft_limit=overdraft_limit,
            is_frozen=is_frozen,
            created_at=user.created_at,
        )
        if balance:
            opened = user.created_at
            db.add(
                Transaction(
                    account_id=account.id,
                    type="credit" if balance > 0 else "debit",
                    amount=abs(balance),
                    authorized_amount=abs(balance),
                    status="posted",
                    category="transfer",
                    description="Opening deposit",
                    created_at=opened,
                    posted_at=opened,
                )
            )
            accounts.adjust_balance(account.id, balance)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def ledger_total(db: Session):
    """Sum of signed posted + pending amounts for an account"""

    def _total(account_id: str) -> int:
        return TransactionRepository(db).signed_total(account_id, [TransactionStatus.POSTED, TransactionStatus.PENDING])

    return _total


@pytest.fixture
def make_simulation(db: Session, clock: FixedClock, app_settings: Settings):
    """Factory for simulation engines on the shared test store with a hand-cranked timer"""

    def _make(config: SimulationConfig) -> SimulationEngine:
        return SimulationEngine(
            session_factory=TestingSessionLocal,
            config=config,
            clock=clock,
            timer_factory=ManualTimer,
            app_settings=app_settings,
        )

    return _make


@pytest.fixture
def simulation(make_simulation, sim_config: SimulationConfig) -> SimulationEngine:
    return make_simulation(sim_config)


@pytest.fixture
def app(db: Session, clock: FixedClock, app_settings: Settings):
    app = create_app(
        session_factory=TestingSessionLocal,
        clock=clock,
        timer_factory=ManualTimer,
        app_settings=app_settings,
    )

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app) -> TestClient:
    """Create FastAPI test client with test database"""
    return TestClient(app)
