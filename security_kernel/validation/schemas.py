"""
Input schemas for user, company and transaction payloads.

Fields are normalized before their rules run: emails are trimmed and
lower-cased, tax IDs upper-cased, phone numbers trimmed.  Unknown keys are
dropped.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from security_kernel.validation.sanitize import sanitize_url

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
TAX_ID_PATTERN = re.compile(r"^[A-Z0-9-]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s()-]+$")

Role = Literal["SUPER_ADMIN", "CONTADOR", "CLIENTE", "AUDITOR"]
TransactionType = Literal["INCOME", "EXPENSE"]


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email address.")
    return normalized


class UserInput(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    email: str
    password: str = Field(..., min_length=12)
    role: Role | None = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _normalize_email(value)


class CompanyInput(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    legal_name: str = Field(..., min_length=2, max_length=200)
    tax_id: str
    address: str = Field(..., min_length=5, max_length=500)
    phone: str
    email: str | None = None
    website: str | None = None

    @field_validator("tax_id")
    @classmethod
    def _check_tax_id(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not TAX_ID_PATTERN.match(normalized):
            raise ValueError("Invalid tax ID.")
        return normalized

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        normalized = value.strip()
        if not PHONE_PATTERN.match(normalized):
            raise ValueError("Invalid phone number.")
        return normalized

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_email(value)

    @field_validator("website")
    @classmethod
    def _check_website(cls, value: str | None) -> str | None:
        # An empty string means "no website".
        if not value:
            return value
        url = sanitize_url(value)
        if url is None:
            raise ValueError("Invalid URL.")
        return url


class TransactionInput(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=3, max_length=500)
    type: TransactionType
    category: str = Field(..., min_length=2, max_length=100)
    date: datetime
    invoice_number: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=1000)
