"""Employee and payroll models."""
from typing import Optional

from sqlmodel import Field

from bizsync.models.base import RecordBase


class Employee(RecordBase, table=True):
    __tablename__ = "employees"

    company_id: str = Field(foreign_key="companies.id", index=True)
    employee_number: int
    name: str
    job_title: str
    phone: Optional[str] = None
    id_number: Optional[str] = None
    base_salary: float = 0.0
    housing_allowance: float = 0.0
    transport_allowance: float = 0.0
    hire_date: Optional[str] = None
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    is_active: bool = True
    notes: Optional[str] = None


class PayrollRecord(RecordBase, table=True):
    __tablename__ = "payroll_records"

    company_id: str = Field(foreign_key="companies.id", index=True)
    employee_id: str = Field(foreign_key="employees.id", index=True)
    period_month: int
    period_year: int
    base_salary: float = 0.0
    housing_allowance: float = 0.0
    transport_allowance: float = 0.0
    other_allowances: float = 0.0
    deductions: float = 0.0
    advances_deducted: float = 0.0
    net_salary: float = 0.0
    payment_date: Optional[str] = None
    payment_method: Optional[str] = None
    status: str = "pending"  # "pending", "paid"
    notes: Optional[str] = None
