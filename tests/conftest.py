"""Shared fixtures: in-memory and file-backed stores, wired services."""

from datetime import datetime

import pytest

from invoicing.config import Settings
from invoicing.errors import PersistenceError
from invoicing.models.invoice import InvoiceItem
from invoicing.services.client_service import ClientService
from invoicing.services.invoice_service import InvoiceService
from invoicing.session import InvoicingSession
from invoicing.storage.gateway import JsonFileKeyValueStore, MemoryKeyValueStore


class FlakyKeyValueStore(MemoryKeyValueStore):
    """Memory store whose writes fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False
        self.writes = 0

    def set(self, key, value):
        if self.failing:
            raise PersistenceError(key, "disk full")
        self.writes += 1
        super().set(key, value)


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", backup_keep=2)


@pytest.fixture
def gateway():
    return FlakyKeyValueStore()


@pytest.fixture
def clients(gateway, settings):
    service = ClientService(gateway, settings)
    service.load()
    yield service
    service.close()


@pytest.fixture
def invoices(gateway, settings):
    service = InvoiceService(gateway, settings)
    service.load()
    yield service
    service.close()


@pytest.fixture
def session(gateway, settings):
    with InvoicingSession(gateway, settings) as s:
        s.load()
        yield s


@pytest.fixture
def file_gateway(settings):
    return JsonFileKeyValueStore(settings.data_dir, backup_keep=settings.backup_keep)


@pytest.fixture
def items():
    return [
        InvoiceItem.build("Design work", 2, 15.0),
        InvoiceItem.build("Hosting", 1, 10.0),
    ]


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 18, 12, 0, 0)
