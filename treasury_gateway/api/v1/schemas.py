"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from treasury_gateway.config import settings
from treasury_gateway.domain.models import (
    Frequency,
    LoanStatus,
    RecurrenceStatus,
    TransactionStatus,
    TransactionType,
)


NON_NULLABLE_UPDATE_FIELDS = (
    "company_id",
    "type",
    "name",
    "category",
    "third_party_name",
    "certainty",
    "notes",
    "frequency",
    "start_date",
    "generate_months_ahead",
    "status",
)


class DomainSchema(BaseModel):
    """Response model built straight from a domain dataclass"""

    model_config = ConfigDict(from_attributes=True)


# Recurrences

class RecurrenceCreate(BaseModel):
    """Request body for POST /v1/recurrences"""

    company_id: str = Field(..., min_length=1)
    type: TransactionType
    name: str = Field(..., min_length=1)
    base_amount: Decimal = Field(..., gt=0, decimal_places=2)
    frequency: Frequency
    start_date: date
    day_of_month: Optional[int] = Field(None, description="1-31, required for month-based frequencies")
    day_of_week: Optional[int] = Field(None, description="0 = Sunday ... 6 = Saturday")
    end_date: Optional[date] = None
    generate_months_ahead: int = Field(default_factory=lambda: settings.default_months_ahead, ge=1, le=24)
    category: str = ""
    third_party_id: Optional[str] = None
    third_party_name: str = ""
    account_id: Optional[str] = None
    certainty: str = "HIGH"
    notes: str = ""
    payment_method: Optional[str] = None
    charge_account_id: Optional[str] = None
    supplier_bank_account: Optional[str] = None
    supplier_invoice_number: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self) -> "RecurrenceCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self


class RecurrenceUpdate(BaseModel):
    """Request body for PATCH /v1/recurrences/{id}; the amount changes through versions"""

    company_id: Optional[str] = None
    type: Optional[TransactionType] = None
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    third_party_id: Optional[str] = None
    third_party_name: Optional[str] = None
    account_id: Optional[str] = None
    certainty: Optional[str] = None
    notes: Optional[str] = None
    frequency: Optional[Frequency] = None
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    generate_months_ahead: Optional[int] = Field(None, ge=1, le=24)
    status: Optional[RecurrenceStatus] = None

    @model_validator(mode="after")
    def reject_null_required(self) -> "RecurrenceUpdate":
        # Omitting these is fine; clearing them is not
        cleared = sorted(
            name for name in NON_NULLABLE_UPDATE_FIELDS
            if name in self.model_fields_set and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class RecurrenceResponse(DomainSchema):
    id: str
    company_id: str
    type: TransactionType
    name: str
    base_amount: Decimal
    frequency: Frequency
    start_date: date
    category: str
    day_of_month: Optional[int]
    day_of_week: Optional[int]
    end_date: Optional[date]
    generate_months_ahead: int
    last_generated_date: Optional[date]
    next_occurrence_date: Optional[date]
    status: RecurrenceStatus
    current_version_id: Optional[str]
    third_party_id: Optional[str]
    third_party_name: str
    account_id: Optional[str]
    certainty: str
    notes: str
    payment_method: Optional[str]
    charge_account_id: Optional[str]
    supplier_bank_account: Optional[str]
    supplier_invoice_number: Optional[str]
    created_at: Optional[datetime]


class RecurrenceChangeResponse(BaseModel):
    """Recurrence plus the instances a create/update generated or removed"""

    recurrence: RecurrenceResponse
    generated_count: int
    deleted_count: int = 0


class ProjectionRequest(BaseModel):
    months_ahead: Optional[int] = Field(None, ge=1, le=24)


class ProjectionResponse(BaseModel):
    recurrence_id: str
    generated_count: int
    last_generated_date: Optional[date]
    next_occurrence_date: Optional[date]


class RegenerateRequest(BaseModel):
    company_id: Optional[str] = None
    months_ahead: Optional[int] = Field(None, ge=1, le=24)


class RegenerateResponse(BaseModel):
    processed: int
    generated: int
    details: List[Dict[str, Any]]
    errors: List[str]


# Versions

class AmendmentRequest(BaseModel):
    """Request body for POST /v1/recurrences/{id}/versions"""

    new_amount: Decimal = Field(..., gt=0, decimal_places=2)
    effective_from: date
    reason: Optional[str] = None
    update_future_transactions: bool = Field(
        False, description="Reprice pending, non-overridden instances due on or after effective_from"
    )


class VersionResponse(DomainSchema):
    id: str
    recurrence_id: str
    amount: Decimal
    effective_from: date
    effective_to: Optional[date]
    version_number: int
    is_active: bool
    change_reason: Optional[str]
    created_at: Optional[datetime]


# Loans

class LoanCreate(BaseModel):
    """Request body for POST /v1/loans"""

    company_id: str = Field(..., min_length=1)
    lender_name: str = Field(..., min_length=1)
    payment_day: int = Field(..., ge=1, le=31)
    first_pending_date: date
    remaining_installments: int = Field(..., ge=1)
    monthly_payment: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    interest_rate: Decimal = Field(Decimal("0"), ge=0)
    original_principal: Decimal = Field(Decimal("0"), ge=0)
    remaining_balance: Decimal = Field(Decimal("0"), ge=0)
    total_installments: Optional[int] = Field(None, ge=1)
    paid_installments: int = Field(0, ge=0)
    alias: str = ""
    charge_account_id: Optional[str] = None
    notes: str = ""

    @model_validator(mode="after")
    def check_amounts(self) -> "LoanCreate":
        if self.paid_installments > self.remaining_installments:
            raise ValueError("paid_installments cannot exceed remaining_installments")
        if self.monthly_payment is None and self.remaining_balance == 0 and self.original_principal == 0:
            raise ValueError("monthly_payment or a balance to amortize is required")
        return self


class LoanResponse(DomainSchema):
    id: str
    company_id: str
    lender_name: str
    alias: str
    monthly_payment: Decimal
    payment_day: int
    first_pending_date: date
    remaining_installments: int
    paid_installments: int
    total_installments: int
    interest_rate: Decimal
    original_principal: Decimal
    remaining_balance: Decimal
    charge_account_id: Optional[str]
    end_date: Optional[date]
    status: LoanStatus
    notes: str
    created_at: Optional[datetime]


class LoanCreateResponse(BaseModel):
    loan: LoanResponse
    generated_count: int


class LoanSummaryResponse(BaseModel):
    loan_id: str
    total_remaining: Decimal
    remaining_count: int
    next_payment_date: Optional[date]
    progress_percent: int


# Transactions

class TransactionResponse(DomainSchema):
    id: Optional[str]
    company_id: str
    type: TransactionType
    amount: Decimal
    due_date: date
    description: str
    status: TransactionStatus
    category: str
    third_party_name: str
    payment_method: Optional[str]
    charge_account_id: Optional[str]
    supplier_bank_account: Optional[str]
    supplier_invoice_number: Optional[str]
    recurrence_id: Optional[str]
    recurrence_version_id: Optional[str]
    loan_id: Optional[str]
    loan_installment_number: Optional[int]
    overridden_from_recurrence: bool


# Maintenance

class PropagateRequest(BaseModel):
    """Field patch; keys outside the propagable allow-list are ignored"""

    fields: Dict[str, Optional[str]]


class PropagateResponse(BaseModel):
    recurrence_id: str
    updated_count: int


class DedupeRequest(BaseModel):
    entity: str = Field("transaction", pattern="^(transaction|recurrence)$")


class DedupeResponse(DomainSchema):
    entity: str
    analyzed: int
    duplicate_groups: int
    deleted_count: int
    errors: List[str]


class AuditEntryResponse(BaseModel):
    action: str
    entity_type: str
    entity_id: str
    previous_values: Optional[Dict[str, Any]]
    new_values: Optional[Dict[str, Any]]
    created_at: datetime
