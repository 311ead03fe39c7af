from __future__ import annotations
import logging
from typing import Dict, Optional

from invoicing.config import Settings, configure_logging, load_settings
from invoicing.samples import SAMPLE_CLIENTS
from invoicing.services.builder_service import InvoiceBuilder
from invoicing.services.client_service import ClientService
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.share_service import ShareService
from invoicing.services.workflow_service import WorkflowService
from invoicing.storage.gateway import JsonFileKeyValueStore, KeyValueStore
from invoicing.storage.repo import LoadResult

log = logging.getLogger(__name__)


class InvoicingSession:
    """
    Regroupe les services d'une session applicative ; la couche de présentation
    reçoit cet objet au lieu d'aller chercher des singletons.
    """

    def __init__(self, gateway: KeyValueStore, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.gateway = gateway
        self.clients = ClientService(gateway, self.settings)
        self.invoices = InvoiceService(gateway, self.settings)
        self.builder = InvoiceBuilder(self.invoices, self.settings)
        self.workflow = WorkflowService(self.invoices)
        self.share = ShareService(self.clients, self.settings)

    @classmethod
    def open(cls, settings: Optional[Settings] = None, *, seed_samples: bool = False) -> "InvoicingSession":
        settings = settings or load_settings()
        configure_logging(settings.log_level)
        gateway = JsonFileKeyValueStore(
            settings.data_dir,
            backup_enabled=settings.backup_enabled,
            backup_keep=settings.backup_keep,
        )
        session = cls(gateway, settings)
        session.load()
        if seed_samples:
            session.clients.seed(SAMPLE_CLIENTS)
            session.clients.flush()
        return session

    def load(self) -> Dict[str, LoadResult]:
        results = {"clients": self.clients.load(), "invoices": self.invoices.load()}
        for name, res in results.items():
            if res.degraded:
                log.warning("%s chargés en mode dégradé (%s, %d ignoré(s))", name, res.status, res.skipped)
        return results

    def flush(self) -> None:
        self.clients.flush()
        self.invoices.flush()

    def close(self) -> None:
        self.clients.close()
        self.invoices.close()

    def __enter__(self) -> "InvoicingSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
