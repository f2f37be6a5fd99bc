"""Expansion of recurrences into concrete transaction instances"""

from datetime import date
from typing import Optional

from treasury_gateway.domain.models import (
    ProjectionResult,
    Recurrence,
    RecurrenceStatus,
    TransactionInstance,
    TransactionStatus,
)
from treasury_gateway.domain.scheduler import first_occurrence, next_occurrence, occurrence_dates
from treasury_gateway.utils.date_utils import add_months


def window_end(today: date, months_ahead: int) -> date:
    """Exclusive upper bound of a look-ahead window"""
    return add_months(today, months_ahead)


def generation_start(recurrence: Recurrence) -> date:
    """
    Date from which the next projection resumes.

    The stored next_occurrence_date wins; otherwise one step past the
    watermark, or the first occurrence for a recurrence never generated.
    """
    rule = (recurrence.frequency, recurrence.day_of_month, recurrence.day_of_week)
    if recurrence.next_occurrence_date is not None:
        start = recurrence.next_occurrence_date
    elif recurrence.last_generated_date is not None:
        start = next_occurrence(recurrence.last_generated_date, *rule)
    else:
        start = first_occurrence(recurrence.start_date, *rule)

    if start < recurrence.start_date:
        start = first_occurrence(recurrence.start_date, *rule)
    return start


def build_instance(recurrence: Recurrence, due_date: date) -> TransactionInstance:
    """Transaction instance for one occurrence, using the active amount"""
    return TransactionInstance(
        owner_id=recurrence.owner_id,
        company_id=recurrence.company_id,
        type=recurrence.type,
        amount=recurrence.base_amount,
        due_date=due_date,
        description=recurrence.name,
        status=TransactionStatus.PENDING,
        category=recurrence.category,
        third_party_id=recurrence.third_party_id,
        third_party_name=recurrence.third_party_name,
        account_id=recurrence.account_id,
        notes=recurrence.notes,
        payment_method=recurrence.payment_method,
        charge_account_id=recurrence.charge_account_id,
        supplier_bank_account=recurrence.supplier_bank_account,
        supplier_invoice_number=recurrence.supplier_invoice_number,
        recurrence_id=recurrence.id,
        recurrence_version_id=recurrence.current_version_id,
    )


def project(
    recurrence: Recurrence,
    months_ahead: Optional[int] = None,
    today: Optional[date] = None,
    limit: int = 100,
) -> ProjectionResult:
    """
    Expand a recurrence over the window [next occurrence, today + months_ahead).

    Generation resumes past the watermark, so repeating a call with the same
    window yields no new instances. Generation also stops at the
    recurrence's end_date; that is a normal stop, not an error.

    Args:
        recurrence: Recurrence to expand
        months_ahead: Window size; defaults to the recurrence's horizon
        today: Caller-supplied "now"
        limit: Maximum instances emitted in one call

    Returns:
        ProjectionResult with the new instances, the advanced watermark and
        the recomputed next occurrence
    """
    unchanged = ProjectionResult(
        instances=[],
        generated_count=0,
        new_watermark=recurrence.last_generated_date,
        next_occurrence_date=recurrence.next_occurrence_date,
    )
    if recurrence.status != RecurrenceStatus.ACTIVE:
        return unchanged

    if months_ahead is None:
        months_ahead = recurrence.generate_months_ahead
    if today is None:
        today = date.today()

    start = generation_start(recurrence)
    dates = list(
        occurrence_dates(
            start,
            window_end(today, months_ahead),
            recurrence.frequency,
            recurrence.day_of_month,
            recurrence.day_of_week,
            end_date=recurrence.end_date,
            limit=limit,
        )
    )
    if not dates:
        unchanged.next_occurrence_date = start
        return unchanged

    watermark = dates[-1]
    return ProjectionResult(
        instances=[build_instance(recurrence, d) for d in dates],
        generated_count=len(dates),
        new_watermark=watermark,
        next_occurrence_date=next_occurrence(
            watermark, recurrence.frequency, recurrence.day_of_month, recurrence.day_of_week
        ),
    )
