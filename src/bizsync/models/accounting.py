"""Chart of accounts, journal and voucher models."""
from typing import Optional

from sqlmodel import Field

from bizsync.models.base import RecordBase


class AccountCategory(RecordBase, table=True):
    """Chart-of-accounts node. parent_id points at another row of this table."""

    __tablename__ = "account_categories"

    company_id: str = Field(foreign_key="companies.id", index=True)
    code: str
    name: str
    type: str  # "asset", "liability", "equity", "revenue", "expense"
    parent_id: Optional[str] = Field(default=None, foreign_key="account_categories.id")
    description: Optional[str] = None
    is_system: bool = False


class JournalEntry(RecordBase, table=True):
    __tablename__ = "journal_entries"

    company_id: str = Field(foreign_key="companies.id", index=True)
    entry_number: int
    entry_date: str
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    is_auto_generated: bool = False
    is_opening_balance: bool = False
    is_closing_balance: bool = False
    fiscal_year_id: Optional[str] = Field(default=None, foreign_key="fiscal_years.id")
    created_by: Optional[str] = None


class JournalEntryLine(RecordBase, table=True):
    """company_id is denormalized from the parent entry so lines can be scoped."""

    __tablename__ = "journal_entry_lines"

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    journal_entry_id: str = Field(foreign_key="journal_entries.id", index=True)
    account_id: str = Field(foreign_key="account_categories.id")
    debit: float = 0.0
    credit: float = 0.0
    description: Optional[str] = None


class Voucher(RecordBase, table=True):
    __tablename__ = "vouchers"

    company_id: str = Field(foreign_key="companies.id", index=True)
    voucher_number: int
    voucher_type: str  # "receipt", "payment"
    voucher_date: str
    amount: float
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    from_account_id: Optional[str] = Field(default=None, foreign_key="account_categories.id")
    to_account_id: Optional[str] = Field(default=None, foreign_key="account_categories.id")
    fiscal_year_id: Optional[str] = Field(default=None, foreign_key="fiscal_years.id")
    created_by: Optional[str] = None
