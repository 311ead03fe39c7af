from __future__ import annotations
from concurrent.futures import Future
from typing import List, Optional

from invoicing.errors import InvoiceNotFoundError, StatusTransitionError
from invoicing.models.invoice import Invoice, InvoiceDraft, InvoiceStatus
from invoicing.services.invoice_service import InvoiceService

# transitions autorisées depuis l'écran de détail
TRANSITIONS: dict[InvoiceStatus, tuple[InvoiceStatus, ...]] = {
    "draft": ("sent",),
    "sent": ("paid",),
    "overdue": ("paid",),
    "paid": (),
}


class WorkflowService:
    def __init__(self, invoices: InvoiceService):
        self.invoices = invoices

    def _get(self, invoice_id: str) -> Invoice:
        inv = self.invoices.get_by_id(invoice_id)
        if inv is None:
            raise InvoiceNotFoundError(invoice_id)
        return inv

    def _move(self, invoice_id: str, target: InvoiceStatus) -> "Future[Optional[Invoice]]":
        inv = self._get(invoice_id)
        if target not in TRANSITIONS[inv.status]:
            raise StatusTransitionError(inv.invoice_number, inv.status, target)
        return self.invoices.update(invoice_id, {"status": target})

    # Envoi : draft → sent
    def mark_sent(self, invoice_id: str) -> "Future[Optional[Invoice]]":
        return self._move(invoice_id, "sent")

    # Encaissement : sent|overdue → paid (définitif)
    def mark_paid(self, invoice_id: str) -> "Future[Optional[Invoice]]":
        return self._move(invoice_id, "paid")

    # Pro forma → nouvelle facture standard (la pro forma reste inchangée)
    def convert_proforma(self, invoice_id: str) -> "Future[Invoice]":
        inv = self._get(invoice_id)
        if inv.type != "proforma":
            raise ValueError(f"{inv.invoice_number} n'est pas une facture pro forma")
        return self.invoices.create(InvoiceDraft(
            type="standard",
            client_id=inv.client_id,
            items=[it.model_copy() for it in inv.items],
            tax_rate=inv.tax_rate,
            discount_rate=inv.discount_rate,
            due_date=inv.due_date,
            payment_terms=inv.payment_terms,
        ))

    def credit_note_candidates(self, client_id: Optional[str] = None, query: str = "") -> List[Invoice]:
        """Factures pouvant recevoir un avoir : envoyées ou payées, hors avoirs."""
        q = (query or "").strip().lower()
        return self.invoices.repo.find(
            lambda inv: (not client_id or inv.client_id == client_id)
            and inv.type != "credit_note"
            and inv.status in ("sent", "paid")
            and (not q or q in inv.invoice_number.lower())
        )
