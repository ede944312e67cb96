import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RULE_CACHE_TTL_SECONDS", "60")

import uuid

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from erp_pricing import models  # noqa: F401
from erp_pricing.database.connection import Base
from erp_pricing.models.pricing_rule import PricingRule, QuantityTier, RuleCondition, RuleTarget
from erp_pricing.models.store import Store
from erp_pricing.services.pricing_service import rule_store

TEST_DB_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# let SQLite honour SAVEPOINTs so route-level rollbacks stay inside the test transaction
@event.listens_for(engine, "connect")
def _no_implicit_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _explicit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def create_test_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    connection = engine.connect()
    trans = connection.begin()
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")
    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def clear_rule_cache():
    # ids are reused after each rollback, so cached rules must not leak between tests
    rule_store.invalidate_store()
    rule_store.CACHE_STATS.update(hits=0, misses=0)
    yield
    rule_store.invalidate_store()


@pytest.fixture()
def store(db):
    row = Store(name="Test Store", code=f"ST_{uuid.uuid4().hex[:6].upper()}")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def add_rule(db, store_id, conditions=(), targets=(), tiers=(), **fields):
    """Persist a rule with its children straight through the ORM."""
    fields.setdefault("name", f"Rule {uuid.uuid4().hex[:6]}")
    fields.setdefault("rule_type", "percentage_discount")
    rule = PricingRule(store_id=store_id, **fields)
    rule.conditions = [RuleCondition(**c) for c in conditions]
    rule.targets = [RuleTarget(**t) for t in targets]
    rule.quantity_tiers = [QuantityTier(**t) for t in tiers]
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@pytest.fixture()
def make_rule(db, store):
    def _make(**fields):
        return add_rule(db, store.id, **fields)

    return _make
