"""Installment schedules for fixed-term amortizing loans"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from treasury_gateway.domain.models import (
    Loan,
    LoanSummary,
    TransactionInstance,
    TransactionStatus,
    TransactionType,
)
from treasury_gateway.utils.date_utils import installment_date

CENTS = Decimal("0.01")
LOAN_CATEGORY = "Loan"
LOAN_PAYMENT_METHOD = "DIRECT_DEBIT"


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def monthly_payment(principal: Decimal, annual_rate_percent: Decimal, months: int) -> Decimal:
    """
    Fixed monthly payment of a French (annuity) amortization.

    Formula: P * r * (1 + r)^n / ((1 + r)^n - 1) with r = annual% / 100 / 12.
    A zero rate splits the principal evenly. Rounded half-up to cents.

    Example:
        monthly_payment(12000, 0, 12) -> 1000.00
        monthly_payment(10000, 5, 12) -> 856.07
    """
    if months <= 0:
        raise ValueError("months must be positive")

    principal = Decimal(principal)
    annual_rate_percent = Decimal(annual_rate_percent)

    if annual_rate_percent == 0:
        return round_money(principal / months)

    rate = annual_rate_percent / 100 / 12
    growth = (1 + rate) ** months
    return round_money(principal * rate * growth / (growth - 1))


def loan_end_date(first_pending_date: date, remaining_installments: int, payment_day: int) -> date:
    """Due date of the last pending installment"""
    return installment_date(first_pending_date, remaining_installments, payment_day)


def installment_description(loan: Loan, number: int) -> str:
    return f"Installment {number}/{loan.remaining_installments} - {loan.alias or loan.lender_name}"


def generate_installments(loan: Loan) -> List[TransactionInstance]:
    """
    One pending expense per remaining installment, numbered 1..remaining.

    Due dates come from installment_date, so a payment day of 31 lands on the
    last day of shorter months.
    """
    if loan.original_principal > 0:
        notes = (
            f"Loan: {loan.alias or loan.lender_name}. "
            f"Original principal: {loan.original_principal}, interest: {loan.interest_rate}%"
        )
    else:
        notes = f"Loan: {loan.alias or loan.lender_name}. Interest: {loan.interest_rate}%"

    return [
        TransactionInstance(
            owner_id=loan.owner_id,
            company_id=loan.company_id,
            type=TransactionType.EXPENSE,
            amount=loan.monthly_payment,
            due_date=installment_date(loan.first_pending_date, number, loan.payment_day),
            description=installment_description(loan, number),
            status=TransactionStatus.PENDING,
            category=LOAN_CATEGORY,
            third_party_name=loan.lender_name,
            notes=notes,
            payment_method=LOAN_PAYMENT_METHOD,
            charge_account_id=loan.charge_account_id,
            loan_id=loan.id,
            loan_installment_number=number,
        )
        for number in range(1, loan.remaining_installments + 1)
    ]


def loan_summary(loan: Loan) -> LoanSummary:
    """
    Outstanding amount, count and progress of a loan.

    progress_percent is paid / remaining installments, rounded half-up; a
    loan with no remaining installments reports 100.
    """
    remaining_count = max(loan.remaining_installments - loan.paid_installments, 0)
    total_remaining = round_money(loan.monthly_payment * remaining_count)

    if loan.remaining_installments > 0:
        ratio = Decimal(loan.paid_installments) / Decimal(loan.remaining_installments) * 100
        progress = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    else:
        progress = 100

    next_payment = None
    if remaining_count > 0:
        next_payment = installment_date(
            loan.first_pending_date, loan.paid_installments + 1, loan.payment_day
        )

    return LoanSummary(
        total_remaining=total_remaining,
        remaining_count=remaining_count,
        next_payment_date=next_payment,
        progress_percent=progress,
    )
