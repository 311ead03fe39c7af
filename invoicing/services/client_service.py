from __future__ import annotations
from concurrent.futures import Future
from typing import Any, Iterable, List, Mapping, Optional, Union
import logging

from invoicing.config import Settings
from invoicing.models.client import Client, ClientData
from invoicing.models.common import gen_id, now
from invoicing.storage.gateway import KeyValueStore
from invoicing.storage.repo import CollectionRepository, LoadResult

log = logging.getLogger(__name__)


def _to_payload(data: Union[ClientData, Mapping[str, Any]]) -> dict:
    if isinstance(data, ClientData):
        return data.model_dump(exclude_unset=True)
    return dict(data)


class ClientService:
    def __init__(self, gateway: KeyValueStore, settings: Optional[Settings] = None):
        settings = settings or Settings()
        self.repo: CollectionRepository[Client] = CollectionRepository(
            gateway, settings.clients_key, Client, entity_name="client"
        )

    def load(self) -> LoadResult[Client]:
        return self.repo.load()

    def list_clients(self) -> List[Client]:
        return self.repo.snapshot()

    def get_by_id(self, client_id: str) -> Optional[Client]:
        return self.repo.get(client_id)

    def search(self, query: str) -> List[Client]:
        if not (query or "").strip():
            return self.repo.snapshot()
        q = query.lower()
        return self.repo.find(lambda c: any(q in term for term in c.search_terms()))

    # ----------- mutations (écritures en file) -----------
    def add(self, data: Union[ClientData, Mapping[str, Any]]) -> "Future[Client]":
        payload = _to_payload(data)
        stamp = now()
        client = Client.model_validate({**payload, "id": gen_id(), "created_at": stamp, "updated_at": stamp})

        def mutation(clients: List[Client]):
            return clients + [client], client

        log.debug("ajout client %s", client.id)
        return self.repo.submit(mutation)

    def update(self, client_id: str, changes: Union[ClientData, Mapping[str, Any]]) -> "Future[Optional[Client]]":
        payload = _to_payload(changes)

        def mutation(clients: List[Client]):
            for idx, existing in enumerate(clients):
                if existing.id == client_id:
                    updated = existing.touched(payload)
                    return clients[:idx] + [updated] + clients[idx + 1:], updated
            return None, None

        return self.repo.submit(mutation)

    def delete(self, client_id: str) -> "Future[bool]":
        def mutation(clients: List[Client]):
            remaining = [c for c in clients if c.id != client_id]
            if len(remaining) == len(clients):
                return None, False
            log.info("client %s supprimé", client_id)
            return remaining, True

        return self.repo.submit(mutation)

    def seed(self, samples: Iterable[Mapping[str, Any]]) -> List["Future[Client]"]:
        """Ajoute des clients d'exemple si la collection est vide."""
        if self.repo.snapshot():
            return []
        return [self.add(s) for s in samples]

    def flush(self) -> None:
        self.repo.flush()

    def close(self) -> None:
        self.repo.close()
