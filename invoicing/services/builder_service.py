from __future__ import annotations
import calendar
import logging
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from invoicing.config import Settings
from invoicing.errors import InvoiceNotFoundError
from invoicing.models.common import now
from invoicing.models.invoice import (
    Frequency, InvoiceDraft, InvoiceItem, InvoiceStatus, RecurringSettings, TimesheetEntry,
)
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.text_render import render

log = logging.getLogger(__name__)


def add_months(moment: datetime, months: int) -> datetime:
    """Ajoute des mois calendaires ; le jour est ramené à la fin du mois si besoin (31/01 + 1 → 28 ou 29/02)."""
    idx = moment.month - 1 + months
    year, month = moment.year + idx // 12, idx % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_due_date(frequency: Frequency, start: Optional[datetime] = None) -> datetime:
    start = start or now()
    if frequency == "weekly":
        return start + timedelta(days=7)
    months = {"monthly": 1, "quarterly": 3, "yearly": 12}.get(frequency)
    if months is None:
        raise ValueError(f"fréquence inconnue: {frequency}")
    return add_months(start, months)


def _valid_items(items: Iterable[InvoiceItem]) -> List[InvoiceItem]:
    return [it for it in items if it.description.strip()]


class InvoiceBuilder:
    """
    Compose les factures spécifiques (timesheet, récurrente, avoir) avant
    InvoiceService.create : lignes synthétisées, notes rédigées, statut initial.
    """

    def __init__(self, invoices: InvoiceService, settings: Optional[Settings] = None):
        self.invoices = invoices
        self.settings = settings or invoices.settings

    # ----------- standard / proforma -----------
    def standard(self, client_id: str, items: Iterable[InvoiceItem], **fields) -> "Future":
        return self.invoices.create(InvoiceDraft(type="standard", client_id=client_id, items=list(items), **fields))

    def proforma(self, client_id: str, items: Iterable[InvoiceItem], **fields) -> "Future":
        return self.invoices.create(InvoiceDraft(type="proforma", client_id=client_id, items=list(items), **fields))

    # ----------- timesheet -----------
    def timesheet_items(self, entries: Iterable[TimesheetEntry]) -> List[InvoiceItem]:
        cur = self.settings.currency_symbol
        return [
            InvoiceItem(
                id=e.id,
                description=f"{e.date.month}/{e.date.day}/{e.date.year} - {e.description} "
                            f"({e.hours:g}h @ {cur}{e.hourly_rate:g}/hr)",
                quantity=e.hours,
                unit_price=e.hourly_rate,
                total=e.total,
            )
            for e in entries
        ]

    def timesheet(
        self,
        client_id: str,
        entries: Iterable[TimesheetEntry],
        *,
        tax_rate: float = 0,
        discount_rate: float = 0,
        notes: str = "",
        status: InvoiceStatus = "draft",
    ) -> "Future":
        valid = [e for e in entries if e.description.strip() and e.hours > 0]
        if not valid:
            raise ValueError("au moins une ligne de temps est requise")
        text = render(
            "timesheet_notes.txt.j2",
            entries=valid,
            notes=notes.strip(),
            currency=self.settings.currency_symbol,
        )
        return self.invoices.create(InvoiceDraft(
            type="timesheet",
            client_id=client_id,
            items=self.timesheet_items(valid),
            tax_rate=tax_rate,
            discount_rate=discount_rate,
            notes=text,
            status=status,
        ))

    # ----------- récurrente -----------
    def recurring(
        self,
        client_id: str,
        items: Iterable[InvoiceItem],
        frequency: Frequency = "monthly",
        *,
        tax_rate: float = 0,
        discount_rate: float = 0,
        notes: str = "",
        next_due: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        activate: bool = False,
    ) -> "Future":
        """
        Facture « modèle » récurrente. Aucune planification n'est stockée :
        l'activation ne change que le statut initial (sent au lieu de draft).
        """
        valid = _valid_items(items)
        if not valid:
            raise ValueError("au moins une ligne est requise")
        schedule = RecurringSettings(
            frequency=frequency,
            next_due_date=next_due or next_due_date(frequency),
            end_date=end_date,
            is_active=activate,
        )
        text = render(
            "recurring_notes.txt.j2",
            frequency=schedule.frequency,
            active=schedule.is_active,
            next_due_date=schedule.next_due_date,
            end_date=schedule.end_date,
            notes=notes.strip(),
        )
        return self.invoices.create(InvoiceDraft(
            type="recurring",
            client_id=client_id,
            items=valid,
            tax_rate=tax_rate,
            discount_rate=discount_rate,
            notes=text,
            status="sent" if schedule.is_active else "draft",
            due_date=schedule.next_due_date,
        ))

    # ----------- avoir -----------
    def credit_note(
        self,
        client_id: str,
        original_invoice_id: str,
        items: Iterable[InvoiceItem],
        *,
        reason: str = "",
        notes: str = "",
        issue: bool = False,
    ) -> "Future":
        """
        Avoir sur une facture existante : ni taxe ni remise, totaux des lignes
        tels que fournis (le signe « crédit » n'apparaît que dans les notes).
        """
        original = self.invoices.get_by_id(original_invoice_id)
        if original is None:
            raise InvoiceNotFoundError(original_invoice_id)
        valid = _valid_items(items)
        if not valid:
            raise ValueError("au moins une ligne est requise")
        credit_amount = sum(it.total for it in valid)
        text = render(
            "credit_note_notes.txt.j2",
            original=original,
            credit_amount=credit_amount,
            reason=reason.strip(),
            notes=notes.strip(),
            currency=self.settings.currency_symbol,
        )
        log.debug("avoir sur %s (%.2f)", original.invoice_number, credit_amount)
        return self.invoices.create(InvoiceDraft(
            type="credit_note",
            client_id=client_id,
            items=valid,
            tax_rate=0,
            discount_rate=0,
            notes=text,
            status="sent" if issue else "draft",
        ))
