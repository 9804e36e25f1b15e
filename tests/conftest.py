"""
Pytest configuration and global fixtures.

This module provides shared fixtures used across all tests.
"""

import os
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from remitflow.core.events.base import BaseEvent, GlobalEventBus
from remitflow.remittance.application.services.order_service import OrderLifecycleService
from remitflow.remittance.domain import models  # noqa: F401
from remitflow.remittance.domain.enums import OrderStatus
from remitflow.remittance.domain.models import Order, RemittanceType
from remitflow.remittance.domain.value_objects import (
    Actor,
    RecipientConfirmation,
    RecipientDetails,
)
from remitflow.storage.database.base import Base
from remitflow.utils.config import Settings

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


class FakeClock:
    """Controllable replacement for ``utc_now``."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite engine for tests that need independent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'orders.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Create a database session for testing.

    Each test gets a fresh session with automatic rollback.
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        dev_mode=False,
        order_number_prefix="REM",
        alert_interval_seconds=1,
        proof_base_url="https://storage.test/proofs",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event_bus() -> GlobalEventBus:
    """Fresh event bus for each test."""
    return GlobalEventBus()


@pytest.fixture
def published(event_bus: GlobalEventBus) -> list[BaseEvent]:
    """Every event published on the test bus, in order."""
    events: list[BaseEvent] = []
    event_bus.subscribe(BaseEvent, events.append)
    return events


@pytest.fixture
def sample_type(db_session: Session) -> RemittanceType:
    """USD → CUP cash remittance: 10-1000 USD, rate 320, 2.5% commission, SLA 2/3 days."""
    remittance_type = RemittanceType(
        name="Cash delivery Havana",
        currency_code="USD",
        delivery_currency="CUP",
        exchange_rate=Decimal("320"),
        commission_percentage=Decimal("2.5"),
        commission_fixed=Decimal("0"),
        min_amount=Decimal("10"),
        max_amount=Decimal("1000"),
        warning_days=2,
        max_delivery_days=3,
    )
    db_session.add(remittance_type)
    db_session.commit()
    db_session.refresh(remittance_type)
    return remittance_type


@pytest.fixture
def sender() -> Actor:
    return Actor.sender("user-1")


@pytest.fixture
def other_sender() -> Actor:
    return Actor.sender("user-2")


@pytest.fixture
def admin() -> Actor:
    return Actor.admin("admin-1")


@pytest.fixture
def recipient() -> RecipientDetails:
    return RecipientDetails(
        name="Maria Pérez",
        phone="+53 5 1234567",
        id_number="85010112345",
        address="Calle 23 #456",
        province="La Habana",
        municipality="Plaza de la Revolución",
    )


@pytest.fixture
def confirmation() -> RecipientConfirmation:
    return RecipientConfirmation(name="Maria Pérez", id_number="85010112345")


@pytest.fixture
def service(
    db_session: Session, event_bus: GlobalEventBus, settings: Settings, clock: FakeClock
) -> OrderLifecycleService:
    return OrderLifecycleService(db_session, event_bus=event_bus, settings=settings, clock=clock)


@pytest.fixture
def create_order(
    service: OrderLifecycleService,
    sample_type: RemittanceType,
    sender: Actor,
    recipient: RecipientDetails,
) -> Callable[..., Order]:
    """Factory creating an order for ``sender`` against ``sample_type``."""

    def _create(amount: str = "100", owner: Actor | None = None) -> Order:
        return service.create_order(
            (owner or sender).actor_id, sample_type.id, amount, recipient
        )

    return _create


@pytest.fixture
def order_in(
    service: OrderLifecycleService,
    create_order: Callable[..., Order],
    sender: Actor,
    admin: Actor,
    confirmation: RecipientConfirmation,
) -> Callable[[OrderStatus], Order]:
    """Factory creating an order and walking it along the happy path to ``status``."""
    steps = [
        (
            OrderStatus.PROOF_UPLOADED,
            lambda o: service.upload_proof(o.id, o.status, sender, "proofs/payment-1.jpg"),
        ),
        (OrderStatus.VALIDATED, lambda o: service.validate_payment(o.id, o.status, admin)),
        (OrderStatus.PROCESSING, lambda o: service.start_processing(o.id, o.status, admin)),
        (
            OrderStatus.DELIVERED,
            lambda o: service.confirm_delivery(
                o.id, o.status, admin, "proofs/delivery-1.jpg", confirmation
            ),
        ),
        (OrderStatus.COMPLETED, lambda o: service.complete(o.id, o.status, admin)),
    ]

    def _order_in(status: OrderStatus) -> Order:
        order = create_order()
        if status == OrderStatus.CREATED:
            return order
        if status == OrderStatus.REJECTED:
            order = steps[0][1](order)
            return service.reject_payment(order.id, order.status, admin, "Unreadable receipt")
        if status == OrderStatus.CANCELLED:
            return service.cancel(order.id, order.status, sender, "Changed my mind")
        for target, step in steps:
            order = step(order)
            if target == status:
                return order
        raise ValueError(f"Unsupported status {status}")

    return _order_in


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
