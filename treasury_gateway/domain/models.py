"""Domain models - pure Python dataclasses representing treasury entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Frequency(str, Enum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class RecurrenceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAID_OFF = "PAID_OFF"
    CANCELLED = "CANCELLED"


@dataclass
class Recurrence:
    """Template of a periodically repeating income or expense"""

    id: str
    owner_id: str
    company_id: str
    type: TransactionType
    name: str
    base_amount: Decimal
    frequency: Frequency
    start_date: date
    category: str = ""
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None  # 0 = Sunday ... 6 = Saturday
    end_date: Optional[date] = None
    generate_months_ahead: int = 6
    last_generated_date: Optional[date] = None
    next_occurrence_date: Optional[date] = None
    status: RecurrenceStatus = RecurrenceStatus.ACTIVE
    current_version_id: Optional[str] = None
    third_party_id: Optional[str] = None
    third_party_name: str = ""
    account_id: Optional[str] = None
    certainty: str = "HIGH"
    notes: str = ""
    payment_method: Optional[str] = None
    charge_account_id: Optional[str] = None
    supplier_bank_account: Optional[str] = None
    supplier_invoice_number: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class RecurrenceVersion:
    """Effective-dated amount of a recurrence; effective_to is exclusive"""

    id: str
    owner_id: str
    recurrence_id: str
    amount: Decimal
    effective_from: date
    version_number: int
    effective_to: Optional[date] = None
    is_active: bool = True
    change_reason: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class TransactionInstance:
    """Concrete payment or collection, possibly generated from a recurrence or loan"""

    owner_id: str
    company_id: str
    type: TransactionType
    amount: Decimal
    due_date: date
    description: str
    status: TransactionStatus = TransactionStatus.PENDING
    category: str = ""
    third_party_id: Optional[str] = None
    third_party_name: str = ""
    account_id: Optional[str] = None
    notes: str = ""
    payment_method: Optional[str] = None
    charge_account_id: Optional[str] = None
    supplier_bank_account: Optional[str] = None
    supplier_invoice_number: Optional[str] = None
    recurrence_id: Optional[str] = None
    recurrence_version_id: Optional[str] = None
    loan_id: Optional[str] = None
    loan_installment_number: Optional[int] = None
    overridden_from_recurrence: bool = False
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Loan:
    """Fixed-term amortizing debt paid in monthly installments"""

    id: str
    owner_id: str
    company_id: str
    lender_name: str
    monthly_payment: Decimal
    payment_day: int
    first_pending_date: date
    remaining_installments: int
    interest_rate: Decimal = Decimal("0")
    original_principal: Decimal = Decimal("0")
    total_installments: int = 0
    paid_installments: int = 0
    remaining_balance: Decimal = Decimal("0")
    alias: str = ""
    charge_account_id: Optional[str] = None
    end_date: Optional[date] = None
    status: LoanStatus = LoanStatus.ACTIVE
    notes: str = ""
    created_at: Optional[datetime] = None


@dataclass
class ProjectionResult:
    """Outcome of expanding a recurrence over a look-ahead window"""

    instances: List[TransactionInstance]
    generated_count: int
    new_watermark: Optional[date]
    next_occurrence_date: Optional[date]


@dataclass
class LoanSummary:
    """Progress snapshot of a loan"""

    total_remaining: Decimal
    remaining_count: int
    next_payment_date: Optional[date]
    progress_percent: int


@dataclass
class DedupeReport:
    """Result of a duplicate collapse pass"""

    entity: str
    analyzed: int
    duplicate_groups: int = 0
    deleted_count: int = 0
    errors: List[str] = field(default_factory=list)
