# invoicing/services/invoice_service.py
from __future__ import annotations
import json
import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

from invoicing.config import Settings
from invoicing.models.common import gen_id, local_naive, now
from invoicing.models.invoice import (
    Invoice, InvoiceDraft, InvoiceItem, InvoiceMetrics, InvoiceStatus, InvoiceTotals,
)
from invoicing.storage.gateway import KeyValueStore
from invoicing.storage.repo import CollectionRepository, LoadResult

log = logging.getLogger(__name__)

# champs fixés à la création
_FROZEN_FIELDS = ("id", "created_at", "issue_date", "invoice_number")


# ---------- Calculs ----------
def calculate_totals(items: Iterable[InvoiceItem], tax_rate: float = 0, discount_rate: float = 0) -> InvoiceTotals:
    """
    Totaux d'une facture à partir des lignes :
    taxe et remise en pourcentage du sous-total, sans bornage
    (taux négatifs ou remise > sous-total donnent un total négatif).
    """
    subtotal = sum(item.total for item in items)
    tax_amount = subtotal * tax_rate / 100
    discount_amount = subtotal * discount_rate / 100
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total=subtotal + tax_amount - discount_amount,
    )


def _first_of_month(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


# ---------- Service ----------
class InvoiceService:
    def __init__(self, gateway: KeyValueStore, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.gateway = gateway
        self.repo: CollectionRepository[Invoice] = CollectionRepository(
            gateway, self.settings.invoices_key, Invoice, entity_name="invoice"
        )
        self._sequence = 0

    calculate_totals = staticmethod(calculate_totals)

    # ----------- chargement -----------
    def load(self) -> LoadResult[Invoice]:
        self._sequence = self._read_sequence()
        return self.repo.load()

    def _read_sequence(self) -> int:
        key = self.settings.sequence_key
        try:
            raw = self.gateway.get(key)
            if raw is None:
                return 0
            return max(0, int(json.loads(raw).get("last", 0)))
        except Exception as e:
            # la séquence se reconstruit depuis les numéros existants
            log.warning("séquence %s illisible, ignorée: %s", key, e)
            return 0

    def _write_sequence(self, invoice: Invoice) -> None:
        n = invoice.number_suffix()
        if n is None or n <= self._sequence:
            return
        self._sequence = n
        try:
            self.gateway.set(self.settings.sequence_key, json.dumps({"last": n}))
        except Exception:
            log.exception("séquence %s non enregistrée", self.settings.sequence_key)

    # ----------- numérotation -----------
    def _next_number(self, invoices: List[Invoice]) -> str:
        highest = max((inv.number_suffix() or 0 for inv in invoices), default=0)
        n = max(self._sequence, highest, len(invoices)) + 1
        return f"{self.settings.invoice_prefix}{n:0{self.settings.invoice_number_width}d}"

    def generate_invoice_number(self) -> str:
        """Numéro que recevra la prochaine facture créée (INV-001, INV-002...)."""
        return self._next_number(self.repo.snapshot())

    # ----------- lectures -----------
    def list_invoices(self) -> List[Invoice]:
        return self.repo.snapshot()

    def get_by_id(self, invoice_id: str) -> Optional[Invoice]:
        return self.repo.get(invoice_id)

    def get_by_status(self, status: InvoiceStatus) -> List[Invoice]:
        return self.repo.find(lambda inv: inv.status == status)

    def get_by_client(self, client_id: str) -> List[Invoice]:
        return self.repo.find(lambda inv: inv.client_id == client_id)

    def search(self, query: str) -> List[Invoice]:
        if not (query or "").strip():
            return self.repo.snapshot()
        q = query.lower()
        return self.repo.find(
            lambda inv: q in inv.invoice_number.lower() or q in (inv.notes or "").lower()
        )

    def get_metrics(self, at: Optional[datetime] = None) -> InvoiceMetrics:
        invoices = self.repo.snapshot()
        paid = [inv for inv in invoices if inv.status == "paid"]
        pending = [inv for inv in invoices if inv.status == "sent"]
        overdue = [inv for inv in invoices if inv.status == "overdue"]
        month_start = _first_of_month(local_naive(at or now()))
        return InvoiceMetrics(
            total_invoices=len(invoices),
            paid_count=len(paid),
            pending_count=len(pending),
            overdue_count=len(overdue),
            total_revenue=sum(inv.total for inv in paid),
            pending_amount=sum(inv.total for inv in pending),
            overdue_amount=sum(inv.total for inv in overdue),
            this_month_revenue=sum(inv.total for inv in paid if inv.issue_date >= month_start),
        )

    # ----------- mutations (écritures en file) -----------
    def create(self, data: Union[InvoiceDraft, Mapping[str, Any]]) -> "Future[Invoice]":
        draft = data if isinstance(data, InvoiceDraft) else InvoiceDraft.model_validate(data)
        totals = calculate_totals(draft.items, draft.tax_rate, draft.discount_rate)

        def mutation(invoices: List[Invoice]):
            stamp = now()
            inv = Invoice(
                id=gen_id(),
                invoice_number=self._next_number(invoices),
                type=draft.type,
                client_id=draft.client_id,
                items=draft.items,
                tax_rate=draft.tax_rate,
                discount_rate=draft.discount_rate,
                **totals.model_dump(),
                status=draft.status or "draft",
                issue_date=stamp,
                due_date=draft.due_date,
                notes=draft.notes,
                payment_terms=draft.payment_terms,
                created_at=stamp,
                updated_at=stamp,
            )
            return invoices + [inv], inv

        def committed(inv: Invoice) -> None:
            log.info("facture %s créée (%s, %.2f)", inv.invoice_number, inv.type, inv.total)
            self._write_sequence(inv)

        return self.repo.submit(mutation, on_commit=committed)

    def update(self, invoice_id: str, changes: Mapping[str, Any]) -> "Future[Optional[Invoice]]":
        """Fusionne `changes` ; les totaux ne sont PAS recalculés (voir update_items)."""
        payload = {k: v for k, v in dict(changes).items() if k not in _FROZEN_FIELDS}
        return self._replace(invoice_id, lambda inv: inv.touched(payload))

    def update_items(
        self,
        invoice_id: str,
        items: List[InvoiceItem],
        tax_rate: Optional[float] = None,
        discount_rate: Optional[float] = None,
    ) -> "Future[Optional[Invoice]]":
        items = [it if isinstance(it, InvoiceItem) else InvoiceItem.model_validate(it) for it in items]

        def recalc(inv: Invoice) -> Invoice:
            rate = inv.tax_rate if tax_rate is None else tax_rate
            discount = inv.discount_rate if discount_rate is None else discount_rate
            totals = calculate_totals(items, rate, discount)
            return inv.touched({"items": items, "tax_rate": rate, "discount_rate": discount, **totals.model_dump()})

        return self._replace(invoice_id, recalc)

    def _replace(self, invoice_id: str, change) -> "Future[Optional[Invoice]]":
        def mutation(invoices: List[Invoice]):
            for idx, existing in enumerate(invoices):
                if existing.id == invoice_id:
                    updated = change(existing)
                    return invoices[:idx] + [updated] + invoices[idx + 1:], updated
            return None, None

        return self.repo.submit(mutation)

    def delete(self, invoice_id: str) -> "Future[bool]":
        def mutation(invoices: List[Invoice]):
            remaining = [inv for inv in invoices if inv.id != invoice_id]
            if len(remaining) == len(invoices):
                return None, False
            log.info("facture %s supprimée", invoice_id)
            return remaining, True

        return self.repo.submit(mutation)

    def mark_overdue(self, as_of: Optional[datetime] = None) -> "Future[List[Invoice]]":
        """Passe en `overdue` les factures envoyées dont l'échéance est dépassée."""
        def mutation(invoices: List[Invoice]):
            moment = local_naive(as_of or now())
            changed: List[Invoice] = []
            out: List[Invoice] = []
            for inv in invoices:
                if inv.status == "sent" and inv.due_date is not None and inv.due_date < moment:
                    inv = inv.touched({"status": "overdue"})
                    changed.append(inv)
                out.append(inv)
            return (out if changed else None), changed

        return self.repo.submit(mutation)

    def flush(self) -> None:
        self.repo.flush()

    def close(self) -> None:
        self.repo.close()
