"""Shared fixtures: storage backends, audit logger and payment builders."""

from datetime import date
from decimal import Decimal

import pytest

from taxledger.audit import AuditLogger
from taxledger.config import ExchangeRateSettings, LedgerSettings, MaintenanceSettings
from taxledger.ledger import LedgerAggregator, build_payment
from taxledger.models.payment import Currency
from taxledger.services.storage import InMemoryStorage, SQLStorage


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def sql_storage():
    storage = SQLStorage("sqlite://")
    yield storage
    storage.close()


@pytest.fixture(params=["memory", "sql"])
def storage(request):
    """Every test using this fixture runs against both backends."""
    if request.param == "memory":
        yield InMemoryStorage()
    else:
        backend = SQLStorage("sqlite://")
        yield backend
        backend.close()


@pytest.fixture
def audit_logger(storage):
    return AuditLogger(storage.audit)


@pytest.fixture
def aggregator(storage, audit_logger):
    return LedgerAggregator(storage, audit_logger)


@pytest.fixture
def ledger_settings():
    return LedgerSettings(home_currency=Currency.GEL, tax_rate=Decimal("0.01"))


@pytest.fixture
def maintenance_settings():
    return MaintenanceSettings()


@pytest.fixture
def rate_settings():
    return ExchangeRateSettings(
        base_url="https://nbg.test/api",
        max_attempts=3,
        retry_wait_seconds=0,
    )


@pytest.fixture
def make_payment():
    """Factory for PaymentRecords; GEL by default so amounts stay readable."""
    def _make(
        amount="100",
        payment_date=date(2025, 1, 15),
        currency=Currency.GEL,
        rate="1",
        company="Acme LLC",
    ):
        return build_payment(
            company=company,
            amount=Decimal(str(amount)),
            currency=currency,
            payment_date=payment_date,
            exchange_rate=Decimal(str(rate)),
        )
    return _make
