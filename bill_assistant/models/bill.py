"""
Core Bill Models for Bill Assistant

These models define the strict schemas for bill data flowing through the system.
They are designed to:
1. Decode model output strictly (fail closed on any shape mismatch)
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: The language model speaks camelCase JSON (the wire keys
in the prompt), the code speaks snake_case. Aliases bridge the two so the
same model decodes model output and is populated by name everywhere else.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money relative to the user."""
    INCOME = "income"
    EXPENSE = "expense"


class CurrencyCode(str, Enum):
    """Currencies a bill may be recorded in."""
    CNY = "CNY"
    USD = "USD"
    EUR = "EUR"
    HKD = "HKD"
    JPY = "JPY"


# =============================================================================
# EXTRACTED DRAFT (model output)
# =============================================================================

class BillDraft(BaseModel):
    """
    A bill as proposed by the language model.

    CRITICAL: This is PROPOSED data. It exists only in memory until the
    filing step validates it, resolves its category and persists it.

    Unknown keys are rejected and values of the wrong shape fail the decode,
    so a half-understood model reply never turns into a half-trusted bill.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="forbid",
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Short title of the bill (e.g. '晚餐开销')"
    )
    direction: TransactionType = Field(
        ...,
        alias="transactionType",
        description="income or expense"
    )
    invoice_number: Optional[str] = Field(
        default=None,
        alias="invoiceNumber",
        max_length=64,
    )
    counterparty_name: Optional[str] = Field(
        default=None,
        alias="supplierName",
        max_length=200,
        description="Who was paid, or who paid the user"
    )
    category_label: Optional[str] = Field(
        default=None,
        alias="billType",
        max_length=50,
        description="Free-text category picked by the model"
    )
    total_amount: Decimal = Field(
        ...,
        alias="totalAmount",
        gt=0,
        description="Total amount, always positive"
    )
    tax_amount: Optional[Decimal] = Field(
        default=None,
        alias="taxAmount",
        ge=0,
    )
    net_amount: Optional[Decimal] = Field(
        default=None,
        alias="netAmount",
        ge=0,
    )
    currency_code: CurrencyCode = Field(
        ...,
        alias="currencyCode",
    )
    issue_date: date = Field(
        ...,
        alias="issueDate",
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    source_file_id: Optional[int] = Field(
        default=None,
        alias="fileId",
        description="File the bill was read from, echoed back by the model"
    )

    # Filled in by category matching, never by the model
    category_id: Optional[int] = Field(
        default=None,
        exclude=True,
    )

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("currency_code", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


# =============================================================================
# PERSISTED BILL
# =============================================================================

class Bill(BaseModel):
    """
    A bill that has been filed to the user's dataset.

    Only Bill objects are persisted. They are created from a BillDraft
    after validation and category resolution.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = Field(
        default=None,
        description="Assigned by the store on insert"
    )
    owner_id: int = Field(..., gt=0)

    name: str = Field(..., min_length=1, max_length=100)
    direction: TransactionType
    invoice_number: Optional[str] = None
    counterparty_name: Optional[str] = None
    category_label: Optional[str] = None
    category_id: Optional[int] = None

    total_amount: Decimal = Field(..., gt=0)
    tax_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    currency_code: CurrencyCode = CurrencyCode.CNY

    issue_date: date
    notes: Optional[str] = None
    source_file_id: Optional[int] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted: bool = False

    @classmethod
    def from_draft(cls, draft: BillDraft, owner_id: int) -> "Bill":
        """Build a persistable bill from a validated draft."""
        return cls(
            owner_id=owner_id,
            name=draft.name,
            direction=draft.direction,
            invoice_number=draft.invoice_number,
            counterparty_name=draft.counterparty_name,
            category_label=draft.category_label,
            category_id=draft.category_id,
            total_amount=draft.total_amount,
            tax_amount=draft.tax_amount,
            net_amount=draft.net_amount,
            currency_code=draft.currency_code,
            issue_date=draft.issue_date,
            notes=draft.notes,
            source_file_id=draft.source_file_id,
        )


# =============================================================================
# CATEGORY
# =============================================================================

class Category(BaseModel):
    """
    A bill category.

    owner_id is None for system categories, which every user sees and
    nobody may edit. Otherwise the category is private to its owner.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    owner_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=50)
    code: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    sort_order: int = 0
    enabled: bool = True
    is_system: bool = False
    deleted: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_visible_to(self, owner_id: Optional[int]) -> bool:
        """System categories are shared, private ones belong to one owner."""
        if self.deleted:
            return False
        return self.owner_id is None or self.owner_id == owner_id


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a bill draft before it is filed."""

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
