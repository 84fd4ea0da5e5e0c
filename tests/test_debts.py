"""Tests for the debt book."""

import pytest
from datetime import date
from decimal import Decimal

from taxledger.ledger import DebtBook, DebtPaymentError
from taxledger.models.audit import AuditEventType
from taxledger.models.debt import Debt, DebtCurrency, DebtFilter, DebtStatus, DebtType
from taxledger.services.storage import NotFoundError


@pytest.fixture
def book(storage, audit_logger):
    return DebtBook(storage, audit_logger)


def _debt(name="Nino", amount="500", currency=DebtCurrency.GEL, debt_type=DebtType.I_OWE, created=date(2025, 1, 1)):
    return Debt(
        person_name=name,
        original_amount=Decimal(amount),
        currency=currency,
        type=debt_type,
        created_date=created,
    )


class TestRepayment:
    """Tests for DebtBook.record_repayment."""

    def test_partial_then_full(self, book):
        """Test status follows the remaining amount."""
        debt = book.add_debt(_debt(amount="500"))

        partial = book.record_repayment(debt.id, Decimal("200"), payment_date=date(2025, 2, 1))
        assert partial.remaining_amount == Decimal("300")
        assert partial.status == DebtStatus.PARTIALLY_PAID

        paid = book.record_repayment(debt.id, Decimal("300"), payment_date=date(2025, 3, 1))
        assert paid.remaining_amount == Decimal("0")
        assert paid.status == DebtStatus.PAID
        assert paid.payment_progress == Decimal("1")

    def test_rejects_overpayment(self, book, storage):
        """Test amounts above the remaining balance are refused."""
        debt = book.add_debt(_debt(amount="100"))
        with pytest.raises(DebtPaymentError):
            book.record_repayment(debt.id, Decimal("100.01"))

        assert book.get(debt.id).remaining_amount == Decimal("100")
        assert book.payments_for(debt.id) == []

    def test_rejects_non_positive(self, book):
        """Test zero and negative repayments are refused."""
        debt = book.add_debt(_debt())
        with pytest.raises(DebtPaymentError):
            book.record_repayment(debt.id, Decimal("0"))
        with pytest.raises(DebtPaymentError):
            book.record_repayment(debt.id, Decimal("-1"))

    def test_unknown_debt(self, book):
        """Test repaying a debt that does not exist."""
        with pytest.raises(NotFoundError):
            book.record_repayment(_debt().id, Decimal("1"))

    def test_payments_newest_first(self, book):
        """Test repayment history order."""
        debt = book.add_debt(_debt())
        book.record_repayment(debt.id, Decimal("10"), payment_date=date(2025, 1, 5))
        book.record_repayment(debt.id, Decimal("20"), payment_date=date(2025, 3, 5))

        assert [p.amount for p in book.payments_for(debt.id)] == [Decimal("20"), Decimal("10")]


class TestDeleteDebt:
    """Tests for DebtBook.delete_debt."""

    def test_cascades_to_payments(self, book, storage):
        """Test repayments go with their debt."""
        debt = book.add_debt(_debt())
        book.record_repayment(debt.id, Decimal("50"))

        assert book.delete_debt(debt.id) is True
        assert storage.debts.get(debt.id) is None
        assert storage.debt_payments.query() == []

        events = storage.audit.get_events_by_entity("debt", debt.id)
        assert AuditEventType.DEBT_DELETED in {e.event_type for e in events}

    def test_unknown_debt(self, book):
        """Test deleting nothing."""
        assert book.delete_debt(_debt().id) is False


class TestFiltersAndTotals:
    """Tests for list filters and outstanding totals."""

    @pytest.fixture
    def debts(self, book):
        nino = book.add_debt(_debt("Nino", "500", created=date(2025, 1, 1)))
        giorgi = book.add_debt(_debt("Giorgi", "300", DebtCurrency.USD, DebtType.OWES_ME, date(2025, 2, 1)))
        ana = book.add_debt(_debt("Ana", "40", DebtCurrency.GEL, DebtType.OWES_ME, date(2025, 3, 1)))
        book.record_repayment(ana.id, Decimal("40"))
        book.record_repayment(nino.id, Decimal("100"))
        return nino, giorgi, ana

    def test_filters(self, book, debts):
        """Test every list filter."""
        def names(debt_filter):
            return [d.person_name for d in book.filter_debts(debt_filter)]

        assert names(DebtFilter.ALL) == ["Ana", "Giorgi", "Nino"]
        assert names(DebtFilter.I_OWE) == ["Nino"]
        assert names(DebtFilter.OWES_ME) == ["Ana", "Giorgi"]
        assert names(DebtFilter.ACTIVE) == ["Giorgi", "Nino"]
        assert names(DebtFilter.PAID) == ["Ana"]

    def test_search_is_case_insensitive(self, book, debts):
        """Test name search."""
        assert [d.person_name for d in book.filter_debts(search="GIO")] == ["Giorgi"]
        assert len(book.filter_debts(search="")) == 3

    def test_outstanding_totals(self, book, debts):
        """Test only unpaid debts count, by remaining amount."""
        assert book.outstanding_totals(DebtType.I_OWE) == {DebtCurrency.GEL: Decimal("400")}
        assert book.outstanding_totals(DebtType.OWES_ME) == {DebtCurrency.USD: Decimal("300")}

    def test_past_due(self, book):
        """Test overdue active debts."""
        late = _debt("Late")
        late.due_date = date(2025, 1, 10)
        book.add_debt(late)
        book.add_debt(_debt("On time"))

        assert [d.person_name for d in book.past_due(today=date(2025, 2, 1))] == ["Late"]
