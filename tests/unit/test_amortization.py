"""Unit tests for loan amortization and installment schedules"""

import pytest
from datetime import date
from decimal import Decimal
from treasury_gateway.domain.amortization import (
    generate_installments,
    loan_end_date,
    loan_summary,
    monthly_payment,
)
from treasury_gateway.domain.models import Loan, TransactionType


@pytest.fixture
def loan() -> Loan:
    return Loan(
        id="loan-1",
        owner_id="owner-1",
        company_id="company-1",
        lender_name="First Bank",
        alias="Van loan",
        monthly_payment=Decimal("100.00"),
        payment_day=31,
        first_pending_date=date(2025, 1, 31),
        remaining_installments=12,
        interest_rate=Decimal("5"),
        original_principal=Decimal("1150.00"),
    )


def test_monthly_payment_zero_rate():
    assert monthly_payment(Decimal("12000"), Decimal("0"), 12) == Decimal("1000.00")


def test_monthly_payment_annuity():
    """10000 at 5% over 12 months"""
    assert monthly_payment(Decimal("10000"), Decimal("5"), 12) == Decimal("856.07")


def test_monthly_payment_rounds_to_cents():
    payment = monthly_payment(Decimal("1000"), Decimal("0"), 3)
    assert payment == Decimal("333.33")
    assert payment.as_tuple().exponent == -2


def test_monthly_payment_requires_months():
    with pytest.raises(ValueError):
        monthly_payment(Decimal("1000"), Decimal("5"), 0)


def test_generate_installments(loan: Loan):
    installments = generate_installments(loan)

    assert len(installments) == 12
    assert [i.loan_installment_number for i in installments] == list(range(1, 13))
    assert installments[0].due_date == date(2025, 1, 31)
    assert installments[1].due_date == date(2025, 2, 28)
    assert installments[2].due_date == date(2025, 3, 31)
    assert all(i.amount == Decimal("100.00") for i in installments)
    assert all(i.type == TransactionType.EXPENSE for i in installments)
    assert all(i.loan_id == "loan-1" for i in installments)
    assert installments[0].description == "Installment 1/12 - Van loan"
    assert installments[0].third_party_name == "First Bank"


def test_loan_end_date(loan: Loan):
    assert loan_end_date(loan.first_pending_date, loan.remaining_installments, loan.payment_day) == date(2025, 12, 31)


def test_summary_in_progress(loan: Loan):
    loan.paid_installments = 3
    summary = loan_summary(loan)

    assert summary.remaining_count == 9
    assert summary.total_remaining == Decimal("900.00")
    assert summary.progress_percent == 25
    assert summary.next_payment_date == date(2025, 4, 30)


def test_summary_fully_paid(loan: Loan):
    loan.paid_installments = 12
    summary = loan_summary(loan)

    assert summary.remaining_count == 0
    assert summary.total_remaining == Decimal("0.00")
    assert summary.progress_percent == 100
    assert summary.next_payment_date is None


def test_summary_without_installments(loan: Loan):
    loan.remaining_installments = 0
    assert loan_summary(loan).progress_percent == 100
