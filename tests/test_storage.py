"""Tests for the record store backends."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from taxledger.models.audit import AuditEventBuilder
from taxledger.models.debt import Debt, DebtCurrency, DebtType
from taxledger.models.payment import Currency, ExchangeRateRecord, MonthlySummary
from taxledger.services.storage import DuplicateError, NotFoundError, SQLStorage, StorageError


class TestRecordStore:
    """Tests for the generic record store contract."""

    def test_insert_and_get(self, storage, make_payment):
        """Test a record round-trips with its values."""
        payment = make_payment("12.50", date(2025, 2, 2), Currency.EUR, "2.95")
        storage.payments.insert(payment)

        stored = storage.payments.get(payment.id)
        assert stored.id == payment.id
        assert stored.company == "Acme LLC"
        assert stored.currency == Currency.EUR
        assert stored.date == date(2025, 2, 2)
        assert stored.converted_amount == Decimal("37")

    def test_get_missing_returns_none(self, storage):
        """Test lookups of unknown ids."""
        assert storage.payments.get(uuid4()) is None

    def test_duplicate_insert_rejected(self, storage, make_payment):
        """Test ids are unique."""
        payment = make_payment()
        storage.payments.insert(payment)
        with pytest.raises(DuplicateError):
            storage.payments.insert(payment)

    def test_update(self, storage):
        """Test update replaces the stored values."""
        summary = MonthlySummary(year=2025, month=1, total_income=Decimal("10"), payment_count=1)
        storage.summaries.insert(summary)

        summary.total_income = Decimal("25")
        storage.summaries.update(summary)
        assert storage.summaries.get(summary.id).total_income == Decimal("25")

    def test_update_missing_raises(self, storage):
        """Test updating an unknown record."""
        with pytest.raises(NotFoundError):
            storage.summaries.update(MonthlySummary(year=2025, month=1))

    def test_delete(self, storage, make_payment):
        """Test delete reports whether something was removed."""
        payment = make_payment()
        storage.payments.insert(payment)
        assert storage.payments.delete(payment.id) is True
        assert storage.payments.delete(payment.id) is False

    def test_query_filters_and_sorts(self, storage, make_payment):
        """Test predicate, key and reverse."""
        for day in (3, 1, 2):
            storage.payments.insert(make_payment("10", date(2025, 1, day)))
        storage.payments.insert(make_payment("10", date(2024, 1, 1)))

        result = storage.payments.query(
            lambda p: p.date.year == 2025,
            key=lambda p: p.date,
            reverse=True,
        )
        assert [p.date.day for p in result] == [3, 2, 1]

    def test_returned_records_are_copies(self, memory_storage):
        """Test mutating a fetched record does not change storage."""
        summary = MonthlySummary(year=2025, month=1, total_income=Decimal("10"))
        memory_storage.summaries.insert(summary)

        fetched = memory_storage.summaries.get(summary.id)
        fetched.total_income = Decimal("99")
        assert memory_storage.summaries.get(summary.id).total_income == Decimal("10")

    def test_other_record_types(self, storage):
        """Test debts and rates share the same contract."""
        debt = Debt(
            person_name="Nino",
            original_amount=Decimal("100"),
            currency=DebtCurrency.BYN,
            type=DebtType.OWES_ME,
            due_date=date(2025, 9, 1),
        )
        storage.debts.insert(debt)
        rate = ExchangeRateRecord(currency=Currency.USD, rate=Decimal("2.7123"), date=date(2025, 1, 1))
        storage.exchange_rates.insert(rate)

        assert storage.debts.get(debt.id).currency == DebtCurrency.BYN
        assert storage.debts.get(debt.id).type == DebtType.OWES_ME
        assert storage.exchange_rates.get(rate.id).rate == Decimal("2.7123")


class TestTransactions:
    """Tests for transaction scopes."""

    def test_commit(self, storage, make_payment):
        """Test writes in a scope are visible after it."""
        payment = make_payment()
        with storage.transaction():
            storage.payments.insert(payment)
        assert storage.payments.get(payment.id) is not None

    def test_rollback_on_exception(self, storage, make_payment):
        """Test every write of the scope is undone."""
        payment = make_payment()
        summary = MonthlySummary(year=2025, month=1)

        with pytest.raises(RuntimeError):
            with storage.transaction():
                storage.payments.insert(payment)
                storage.summaries.insert(summary)
                raise RuntimeError("boom")

        assert storage.payments.get(payment.id) is None
        assert storage.summaries.get(summary.id) is None

    def test_nested_scope_joins_outer(self, storage, make_payment):
        """Test an inner scope cannot commit on its own."""
        inner_payment = make_payment()

        with pytest.raises(RuntimeError):
            with storage.transaction():
                with storage.transaction():
                    storage.payments.insert(inner_payment)
                raise RuntimeError("outer fails")

        assert storage.payments.get(inner_payment.id) is None

    def test_rollback_keeps_earlier_commits(self, storage, make_payment):
        """Test only the failed scope is undone."""
        kept = make_payment()
        storage.payments.insert(kept)

        with pytest.raises(DuplicateError):
            with storage.transaction():
                storage.payments.insert(make_payment())
                storage.payments.insert(kept)

        assert [p.id for p in storage.payments.query()] == [kept.id]


class TestAuditStorage:
    """Tests for the append-only audit log."""

    def test_append_and_query(self, storage):
        """Test lookups by correlation id and entity."""
        correlation_id = uuid4()
        payment_id = uuid4()
        storage.audit.append_event(AuditEventBuilder.payment_recorded(
            payment_id=payment_id,
            company="Acme LLC",
            converted_amount="10",
            correlation_id=correlation_id,
        ))
        storage.audit.append_event(AuditEventBuilder.summary_created(
            summary_id=uuid4(),
            year=2025,
            month=1,
            correlation_id=correlation_id,
        ))

        assert len(storage.audit.get_events_by_correlation_id(correlation_id)) == 2
        by_entity = storage.audit.get_events_by_entity("payment", payment_id)
        assert len(by_entity) == 1
        assert by_entity[0].details["company"] == "Acme LLC"

    def test_recent_events_limit(self, storage):
        """Test the limit is honoured."""
        for _ in range(5):
            storage.audit.append_event(AuditEventBuilder.maintenance_deleted(record_id=uuid4()))
        assert len(storage.audit.get_recent_events(limit=3)) == 3


class TestSQLStorage:
    """SQL specific behaviour."""

    def test_file_database_persists(self, tmp_path, make_payment):
        """Test data survives reopening the database file."""
        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        payment = make_payment()

        first = SQLStorage(url)
        first.payments.insert(payment)
        first.close()

        second = SQLStorage(url)
        assert second.payments.get(payment.id).company == "Acme LLC"
        second.close()

    def test_unique_period_enforced(self, sql_storage):
        """Test two summaries for one month are refused."""
        sql_storage.summaries.insert(MonthlySummary(year=2025, month=1))
        with pytest.raises(StorageError):
            sql_storage.summaries.insert(MonthlySummary(year=2025, month=1))
