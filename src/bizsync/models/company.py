"""Tenant, fiscal calendar and per-tenant settings models."""
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from bizsync.models.base import RecordBase


class Company(RecordBase, table=True):
    """One row per tenant. Its id is the scope every other table is keyed by."""

    __tablename__ = "companies"

    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    invoice_logo_url: Optional[str] = None
    invoice_settings: Optional[str] = None  # JSON
    is_active: bool = True


class FiscalYear(RecordBase, table=True):
    __tablename__ = "fiscal_years"

    company_id: str = Field(foreign_key="companies.id", index=True)
    name: str
    start_date: str
    end_date: str
    is_current: bool = False
    status: str = "active"  # "active", "closed"
    notes: Optional[str] = None
    closed_at: Optional[str] = None
    closed_by: Optional[str] = None
    opening_balance_entry_id: Optional[str] = None
    closing_balance_entry_id: Optional[str] = None


class AppSetting(RecordBase, table=True):
    """Local-only key/value settings. Never pulled or pushed."""

    __tablename__ = "app_settings"
    __table_args__ = (UniqueConstraint("company_id", "key"),)

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    key: str
    value: Optional[str] = None
