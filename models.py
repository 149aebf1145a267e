"""
Data models for the store entities
Using Pydantic for validation and serialization

Versioned entities (clients, suppliers, sales) carry a server-owned `version`
that starts at 1 and grows by exactly one on every successful update.
Writers never set it; they only echo the value they last read.
"""

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_DIGITS_RE = re.compile(r"^\d+$")


# ============================================================================
# Enums
# ============================================================================

class PaymentType(str, Enum):
    CASH = "cash"
    CARD = "card"
    CREDIT = "credit"
    DEBIT = "debit"
    PIX = "pix"
    BANK_SLIP = "bank_slip"


class SaleStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"
    RETURNED = "returned"


# ============================================================================
# Base Models
# ============================================================================

class BaseEntity(BaseModel):
    """Base model for stored rows"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VersionedEntity(BaseEntity):
    version: int = Field(1, ge=1)


class VersionedUpdate(BaseModel):
    """
    Update payloads echo the version the caller last read.
    A missing or stale version is rejected as a conflict, not a validation error.
    """
    model_config = ConfigDict(use_enum_values=True)

    version: Optional[int] = None


def _check_document(value: Optional[str], length: int, label: str) -> Optional[str]:
    if value is None or value == "":
        return None
    value = value.strip()
    if not _DIGITS_RE.match(value) or len(value) != length:
        raise ValueError(f"{label} must have exactly {length} digits")
    return value


class _PartyFields(BaseModel):
    """Name, documents and status shared by clients and suppliers"""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=3, max_length=255)
    cpf: Optional[str] = None
    cnpj: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    status: bool = True

    @field_validator('cpf')
    @classmethod
    def validate_cpf(cls, v):
        return _check_document(v, 11, "CPF")

    @field_validator('cnpj')
    @classmethod
    def validate_cnpj(cls, v):
        return _check_document(v, 14, "CNPJ")


# ============================================================================
# Clients
# ============================================================================

class ClientCreate(_PartyFields):
    email: Optional[str] = Field(None, max_length=255)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v is None or v == "":
            return None
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v.lower()


class ClientUpdate(ClientCreate, VersionedUpdate):
    pass


class Client(VersionedEntity):
    name: str
    email: Optional[str] = None
    cpf: Optional[str] = None
    cnpj: Optional[str] = None
    description: Optional[str] = None
    status: bool = True


# ============================================================================
# Suppliers
# ============================================================================

class SupplierCreate(_PartyFields):
    pass


class SupplierUpdate(SupplierCreate, VersionedUpdate):
    pass


class Supplier(VersionedEntity):
    name: str
    cnpj: Optional[str] = None
    cpf: Optional[str] = None
    description: Optional[str] = None
    status: bool = True


# ============================================================================
# Sales
# ============================================================================

class SaleCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    client_id: Optional[int] = Field(None, gt=0)
    user_id: Optional[int] = Field(None, gt=0)
    sale_date: Optional[datetime] = None  # defaults to NOW() in the database
    total_items_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    total_items_discount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    total_sale_discount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    total_discount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    payment_type: PaymentType
    status: SaleStatus = SaleStatus.ACTIVE
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode='after')
    def validate_discount(self):
        if self.total_discount > self.total_amount:
            raise ValueError("total_discount must not exceed total_amount")
        if self.total_items_discount > self.total_items_amount:
            raise ValueError("total_items_discount must not exceed total_items_amount")
        return self


class SaleUpdate(SaleCreate, VersionedUpdate):
    pass


class Sale(VersionedEntity):
    client_id: Optional[int] = None
    user_id: Optional[int] = None
    sale_date: datetime
    total_items_amount: Decimal = Decimal("0")
    total_items_discount: Decimal = Decimal("0")
    total_sale_discount: Decimal = Decimal("0")
    total_amount: Decimal
    total_discount: Decimal
    payment_type: PaymentType
    status: SaleStatus
    notes: Optional[str] = None


# ============================================================================
# Product categories (not versioned)
# ============================================================================

class CategoryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)


class CategoryUpdate(CategoryCreate):
    pass


class Category(BaseEntity):
    name: str
    description: Optional[str] = None


# ============================================================================
# Responses
# ============================================================================

class FilterPage(BaseModel):
    """One page of filter results"""
    total: int
    items: list
    filters_applied: dict = Field(default_factory=dict)
    has_more: bool = False
