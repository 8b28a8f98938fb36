"""Pytest configuration and fixtures."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from helpers import dealer_row
from importer.database import Base
from importer.models import Dealer, DealerStatus, PayoutCycle
from importer.services.import_processor import ImportProcessor
from importer.tasks.queue import InMemoryJobQueue


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def processor(session_factory):
    return ImportProcessor(session_factory)


@pytest.fixture
def memory_queue():
    queue = InMemoryJobQueue(lease_timeout=30.0, max_attempts=3, backoff_base_seconds=0.0)
    yield queue
    queue.purge()


@pytest.fixture
def make_dealer(db_session):
    """Insert a dealer directly, bypassing the import pipeline."""

    def _make(i: int, status: DealerStatus = DealerStatus.APPROVED) -> Dealer:
        row = dealer_row(i)
        dealer = Dealer(**row, status=status, created_by=1)
        db_session.add(dealer)
        db_session.commit()
        return dealer

    return _make


@pytest.fixture
def payout_cycle(db_session) -> PayoutCycle:
    cycle = PayoutCycle(name="2026-Q3")
    db_session.add(cycle)
    db_session.commit()
    return cycle
