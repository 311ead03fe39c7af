from __future__ import annotations
from typing import NamedTuple, Optional

from invoicing.config import Settings
from invoicing.models.invoice import Invoice
from invoicing.services.client_service import ClientService
from invoicing.services.text_render import render

UNKNOWN_CLIENT = "Unknown Client"


class SharePayload(NamedTuple):
    title: str
    message: str


class ShareService:
    """Texte partagé à la place du PDF (l'export PDF n'existe pas)."""

    def __init__(self, clients: ClientService, settings: Optional[Settings] = None):
        self.clients = clients
        self.settings = settings or Settings()

    # ----------- clients ----------
    def client_name(self, client_id: str) -> str:
        # le client a pu être supprimé : pas de cascade sur les factures
        c = self.clients.get_by_id(client_id)
        return c.name if c else UNKNOWN_CLIENT

    def share_message(self, invoice: Invoice) -> SharePayload:
        message = render(
            "share_invoice.txt.j2",
            invoice=invoice,
            client_name=self.client_name(invoice.client_id),
            business_name=self.settings.business_name,
            currency=self.settings.currency_symbol,
        )
        return SharePayload(title=f"Invoice {invoice.invoice_number}", message=message)
