from __future__ import annotations


class InvoicingError(Exception):
    pass


class PersistenceError(InvoicingError):
    """Lecture ou écriture impossible sur le stockage clé/valeur."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


class InvoiceNotFoundError(InvoicingError, KeyError):
    def __init__(self, invoice_id: str) -> None:
        super().__init__(f"invoice {invoice_id} not found")
        self.invoice_id = invoice_id

    def __str__(self) -> str:
        return self.args[0]


class StatusTransitionError(InvoicingError, ValueError):
    def __init__(self, invoice_number: str, current: str, target: str) -> None:
        super().__init__(f"{invoice_number}: cannot move from {current} to {target}")
        self.current = current
        self.target = target


class CorruptDataError(PersistenceError):
    """Contenu stocké présent mais illisible (encodage invalide)."""
