import json
import time

import pytest

from invoicing.errors import PersistenceError
from invoicing.models.client import ClientData
from invoicing.samples import SAMPLE_CLIENTS
from invoicing.services.client_service import ClientService


class TestClientCrud:
    """Tests for client creation, update and deletion."""

    def test_add_stamps_identity(self, clients):
        """add() assigns an id and equal creation/update timestamps."""
        client = clients.add({"name": "Jane Doe", "email": "jane@example.com"}).result()

        assert client.id
        assert client.created_at == client.updated_at
        assert clients.get_by_id(client.id) == client

    def test_add_accepts_client_data(self, clients):
        """add() accepts the typed ClientData input."""
        client = clients.add(ClientData(name="Typed", company="Typed Inc")).result()
        assert client.company == "Typed Inc"

    def test_add_ignores_caller_id(self, clients):
        """The store generates the id, whatever the caller passes."""
        client = clients.add({"name": "X", "id": "forced"}).result()
        assert client.id != "forced"

    def test_add_persists_whole_collection(self, clients, gateway, settings):
        """Every mutation rewrites the full serialized collection."""
        clients.add({"name": "A"}).result()
        clients.add({"name": "B"}).result()

        stored = json.loads(gateway.get(settings.clients_key))
        assert [c["name"] for c in stored] == ["A", "B"]

    def test_update_merges_and_keeps_identity(self, clients):
        """update() never changes id or created_at and advances updated_at."""
        client = clients.add({"name": "Old", "phone": "123"}).result()
        time.sleep(0.001)

        updated = clients.update(client.id, {
            "name": "New", "id": "hijack", "created_at": "2000-01-01T00:00:00",
        }).result()

        assert updated.id == client.id
        assert updated.created_at == client.created_at
        assert updated.updated_at >= client.updated_at
        assert updated.name == "New"
        assert updated.phone == "123"

    def test_update_nested_address(self, clients):
        """Nested address is replaced by the merged value."""
        client = clients.add({"name": "A"}).result()
        updated = clients.update(client.id, {"address": {"city": "Paris"}}).result()
        assert updated.address.city == "Paris"

    def test_update_unknown_is_noop(self, clients, gateway, settings):
        """Updating a missing id leaves the stored blob untouched."""
        clients.add({"name": "A"}).result()
        before = gateway.get(settings.clients_key)

        assert clients.update("nonexistent", {"name": "Z"}).result() is None
        assert gateway.get(settings.clients_key) == before

    def test_delete(self, clients):
        """delete() removes the client."""
        client = clients.add({"name": "A"}).result()
        assert clients.delete(client.id).result() is True
        assert clients.get_by_id(client.id) is None

    def test_delete_unknown_is_noop(self, clients, gateway, settings):
        """Deleting a missing id writes nothing."""
        clients.add({"name": "A"}).result()
        before = gateway.get(settings.clients_key)
        writes = gateway.writes

        assert clients.delete("nonexistent").result() is False
        assert gateway.get(settings.clients_key) == before
        assert gateway.writes == writes


class TestClientSearch:
    """Tests for client search."""

    @pytest.fixture
    def populated(self, clients):
        for c in SAMPLE_CLIENTS:
            clients.add(c)
        clients.flush()
        return clients

    def test_search_by_company_case_insensitive(self, populated):
        """search('acme') finds the Acme Corporation client only."""
        found = populated.search("acme")
        assert [c.company for c in found] == ["Acme Corporation"]
        assert populated.search("ACME") == found

    def test_search_by_email_and_name(self, populated):
        """Name and email are searched too."""
        assert [c.name for c in populated.search("techsolutions")] == ["Sarah Johnson"]
        assert [c.name for c in populated.search("mike")] == ["Mike Davis"]

    def test_blank_query_returns_all_in_order(self, populated):
        """An empty or blank query returns the full collection unfiltered."""
        names = [c["name"] for c in SAMPLE_CLIENTS]
        assert [c.name for c in populated.search("")] == names
        assert [c.name for c in populated.search("   ")] == names

    def test_phone_is_not_searched(self, populated):
        """Only name, email and company are matched."""
        assert populated.search("555") == []


class TestClientPersistence:
    """Tests for load, round trip and write failures."""

    def test_round_trip(self, clients, gateway, settings):
        """Reloading yields field-equal clients with datetime timestamps."""
        for c in SAMPLE_CLIENTS:
            clients.add(c)
        clients.flush()

        reloaded = ClientService(gateway, settings)
        result = reloaded.load()
        try:
            assert result.status == "ok"
            assert reloaded.list_clients() == clients.list_clients()
            assert all(c.created_at == o.created_at for c, o in zip(reloaded.list_clients(), clients.list_clients()))
        finally:
            reloaded.close()

    def test_update_after_offset_load(self, gateway, settings):
        """Clients stored with Z timestamps load and update."""
        gateway.set(settings.clients_key, json.dumps([{
            "id": "c1", "name": "Legacy",
            "created_at": "2026-10-01T10:00:00Z", "updated_at": "2026-10-01T10:00:00Z",
        }]))
        service = ClientService(gateway, settings)
        service.load()
        try:
            updated = service.update("c1", {"name": "Renamed"}).result()
        finally:
            service.close()
        assert updated.name == "Renamed"
        assert updated.created_at.tzinfo is None
        assert updated.updated_at >= updated.created_at

    def test_write_failure_keeps_previous_state(self, clients, gateway):
        """A failed write surfaces as PersistenceError and memory is not advanced."""
        kept = clients.add({"name": "Kept"}).result()
        gateway.failing = True

        with pytest.raises(PersistenceError):
            clients.add({"name": "Lost"}).result()
        with pytest.raises(PersistenceError):
            clients.update(kept.id, {"name": "Renamed"}).result()

        assert [c.name for c in clients.list_clients()] == ["Kept"]

    def test_rapid_mutations_do_not_lose_updates(self, clients, gateway, settings):
        """Queued mutations each start from the previous committed state."""
        futures = [clients.add({"name": f"C{i}"}) for i in range(20)]
        created = [f.result() for f in futures]
        first = created[0]
        clients.update(first.id, {"company": "One"})
        clients.update(first.id, {"phone": "Two"})
        clients.flush()

        stored = json.loads(gateway.get(settings.clients_key))
        assert len(stored) == 20
        assert stored[0]["company"] == "One"
        assert stored[0]["phone"] == "Two"

    def test_seed_only_when_empty(self, clients):
        """Sample clients are added once, into an empty collection."""
        assert len(clients.seed(SAMPLE_CLIENTS)) == len(SAMPLE_CLIENTS)
        clients.flush()
        assert clients.seed(SAMPLE_CLIENTS) == []
        assert len(clients.list_clients()) == len(SAMPLE_CLIENTS)
