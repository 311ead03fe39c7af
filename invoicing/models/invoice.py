from __future__ import annotations
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime
from .common import LocalDatetime, Record, TimeStamped, gen_id, now

InvoiceType = Literal["standard", "proforma", "timesheet", "recurring", "credit_note"]
InvoiceStatus = Literal["draft", "sent", "paid", "overdue"]
Frequency = Literal["weekly", "monthly", "quarterly", "yearly"]

class InvoiceItem(Record):
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    total: float = 0.0  # quantity * unit_price, calculé par l'appelant

    @classmethod
    def build(cls, description: str, quantity: float, unit_price: float, id: Optional[str] = None) -> "InvoiceItem":
        return cls(id=id or gen_id(), description=description, quantity=quantity,
                   unit_price=unit_price, total=quantity * unit_price)

class TimesheetEntry(Record):
    date: LocalDatetime = Field(default_factory=now)
    description: str = ""
    hours: float = 1.0
    hourly_rate: float = 0.0
    total: float = 0.0

    @classmethod
    def build(cls, description: str, hours: float, hourly_rate: float,
              date: Optional[datetime] = None) -> "TimesheetEntry":
        return cls(date=date or now(), description=description, hours=hours,
                   hourly_rate=hourly_rate, total=hours * hourly_rate)

class InvoiceTotals(BaseModel):
    subtotal: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0

class InvoiceDraft(BaseModel):
    type: InvoiceType = "standard"
    client_id: str
    items: List[InvoiceItem] = Field(default_factory=list)
    tax_rate: float = 0.0
    discount_rate: float = 0.0
    due_date: Optional[LocalDatetime] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    status: Optional[InvoiceStatus] = None

class Invoice(TimeStamped):
    invoice_number: str
    type: InvoiceType = "standard"
    client_id: str

    items: List[InvoiceItem] = Field(default_factory=list)
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    discount_rate: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0

    status: InvoiceStatus = "draft"
    issue_date: LocalDatetime = Field(default_factory=now)
    due_date: Optional[LocalDatetime] = None

    notes: Optional[str] = None
    payment_terms: Optional[str] = None

    def number_suffix(self) -> Optional[int]:
        tail = self.invoice_number.rsplit("-", 1)[-1]
        return int(tail) if tail.isdigit() else None

class InvoiceMetrics(BaseModel):
    total_invoices: int = 0
    paid_count: int = 0
    pending_count: int = 0
    overdue_count: int = 0
    total_revenue: float = 0.0
    pending_amount: float = 0.0
    overdue_amount: float = 0.0
    this_month_revenue: float = 0.0

class RecurringSettings(BaseModel):
    frequency: Frequency = "monthly"
    next_due_date: LocalDatetime
    end_date: Optional[LocalDatetime] = None
    is_active: bool = False
