"""Customer, supplier, inventory, sales, expense and quotation models."""
from typing import Optional

from sqlmodel import Field

from bizsync.models.base import RecordBase


class Customer(RecordBase, table=True):
    __tablename__ = "customers"

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    name: str
    phone: str
    address: Optional[str] = None
    id_number: Optional[str] = None
    registration_number: Optional[str] = None


class Supplier(RecordBase, table=True):
    __tablename__ = "suppliers"

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    name: str
    phone: str
    address: Optional[str] = None
    contact_person: Optional[str] = None
    notes: Optional[str] = None


class Car(RecordBase, table=True):
    """Inventory item. status: "available", "sold", "transferred"."""

    __tablename__ = "cars"

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    inventory_number: int
    name: str
    chassis_number: str
    model: Optional[str] = None
    color: Optional[str] = None
    purchase_price: float
    purchase_date: Optional[str] = None
    status: str = "available"
    supplier_id: Optional[str] = Field(default=None, foreign_key="suppliers.id")
    fiscal_year_id: Optional[str] = Field(default=None, foreign_key="fiscal_years.id")
    batch_id: Optional[str] = None
    payment_account_id: Optional[str] = None


class Sale(RecordBase, table=True):
    __tablename__ = "sales"

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    invoice_number: int
    car_id: Optional[str] = Field(default=None, foreign_key="cars.id")
    customer_id: Optional[str] = Field(default=None, foreign_key="customers.id")
    sale_price: float
    sale_date: Optional[str] = None
    payment_method: str = "cash"
    profit: float = 0.0
    commission: float = 0.0
    vat_amount: float = 0.0
    is_vat_included: bool = False
    notes: Optional[str] = None
    fiscal_year_id: Optional[str] = Field(default=None, foreign_key="fiscal_years.id")
    payment_account_id: Optional[str] = None


class Expense(RecordBase, table=True):
    __tablename__ = "expenses"

    company_id: str = Field(foreign_key="companies.id", index=True)
    description: str
    amount: float
    expense_date: Optional[str] = None
    category_id: Optional[str] = None
    car_id: Optional[str] = Field(default=None, foreign_key="cars.id")
    account_id: Optional[str] = None
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    has_vat_invoice: bool = False
    notes: Optional[str] = None
    fiscal_year_id: Optional[str] = Field(default=None, foreign_key="fiscal_years.id")
    created_by: Optional[str] = None


class Quotation(RecordBase, table=True):
    __tablename__ = "quotations"

    company_id: str = Field(foreign_key="companies.id", index=True)
    quotation_number: int
    customer_id: Optional[str] = Field(default=None, foreign_key="customers.id")
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    quotation_date: Optional[str] = None
    valid_until: Optional[str] = None
    total_amount: float = 0.0
    vat_amount: float = 0.0
    grand_total: float = 0.0
    status: str = "draft"
    notes: Optional[str] = None
    created_by: Optional[str] = None


class QuotationItem(RecordBase, table=True):
    """company_id is denormalized from the parent quotation so items can be scoped."""

    __tablename__ = "quotation_items"

    company_id: Optional[str] = Field(default=None, foreign_key="companies.id", index=True)
    quotation_id: str = Field(foreign_key="quotations.id", index=True)
    car_id: Optional[str] = Field(default=None, foreign_key="cars.id")
    description: str
    quantity: int = 1
    unit_price: float
    total_price: float
