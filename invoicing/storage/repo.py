from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Literal, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from invoicing.errors import CorruptDataError, PersistenceError
from invoicing.storage.gateway import KeyValueStore

log = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")

LoadStatus = Literal["ok", "empty", "corrupt", "unavailable"]

# reçoit la collection validée, renvoie (nouvelle collection ou None si inchangée, résultat)
Mutation = Callable[[List[T]], Tuple[Optional[List[T]], R]]


@dataclass(frozen=True)
class LoadResult(Generic[T]):
    key: str
    status: LoadStatus
    records: List[T] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        """Vrai si des données ont été écartées (fichier corrompu, illisible, entrées invalides)."""
        return self.status in ("corrupt", "unavailable") or self.skipped > 0


class CollectionRepository(Generic[T]):
    """
    Collection en mémoire d'un type de modèle, sérialisée en entier sous une clé.
    - Les lectures se font sur l'état validé (dernière écriture réussie)
    - Les mutations passent par un unique thread d'écriture : chacune part
      de l'état validé laissé par la précédente
    - La mémoire n'avance qu'après une écriture réussie
    """

    def __init__(
        self,
        gateway: KeyValueStore,
        key: str,
        model: Type[T],
        entity_name: str = "entity",
    ) -> None:
        self.gateway = gateway
        self.key = key
        self.model = model
        self.entity_name = entity_name
        self.last_load: Optional[LoadResult[T]] = None
        self._records: List[T] = []
        self._lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{entity_name}-writer")

    # ---------------- Chargement ---------------- #

    def load(self) -> LoadResult[T]:
        return self._writer.submit(self._load).result()

    def _load(self) -> LoadResult[T]:
        try:
            raw = self.gateway.get(self.key)
        except CorruptDataError as e:
            log.error("%s corrompu, collection vide: %s", self.key, e)
            self.gateway.quarantine(self.key)
            return self._commit_load(LoadResult(self.key, "corrupt", error=str(e)))
        except Exception as e:
            log.error("lecture de %s impossible, collection vide: %s", self.key, e)
            return self._commit_load(LoadResult(self.key, "unavailable", error=str(e)))

        if raw is None:
            return self._commit_load(LoadResult(self.key, "empty"))

        try:
            data = json.loads(raw)
        except ValueError as e:
            data, error = None, f"JSON invalide: {e}"
        else:
            error = None if isinstance(data, list) else f"liste attendue, reçu {type(data).__name__}"
        if error:
            # Contenu corrompu → copie de côté et repart sur liste vide
            log.error("%s corrompu, collection vide: %s", self.key, error)
            self.gateway.quarantine(self.key)
            return self._commit_load(LoadResult(self.key, "corrupt", error=error))

        records: List[T] = []
        skipped = 0
        for d in data:
            try:
                records.append(self.model.model_validate(d))
            except ValidationError as e:
                skipped += 1
                log.warning("%s ignoré dans %s: %s", self.entity_name, self.key, e)
        return self._commit_load(LoadResult(self.key, "ok", records, skipped))

    def _commit_load(self, result: LoadResult[T]) -> LoadResult[T]:
        with self._lock:
            self._records = list(result.records)
        self.last_load = result
        log.debug("%s: %d %s chargé(s) (%s)", self.key, len(result.records), self.entity_name, result.status)
        return result

    # ---------------- Lectures ---------------- #

    def snapshot(self) -> List[T]:
        with self._lock:
            return list(self._records)

    def get(self, obj_id: str) -> Optional[T]:
        for r in self.snapshot():
            if r.id == obj_id:
                return r
        return None

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [r for r in self.snapshot() if predicate(r)]

    # ---------------- Écritures ---------------- #

    def dumps(self, records: List[T]) -> str:
        return json.dumps([r.model_dump(mode="json") for r in records], ensure_ascii=False, indent=2)

    def submit(
        self,
        mutation: Mutation,
        on_commit: Optional[Callable[[Any], None]] = None,
    ) -> "Future[Any]":
        """Met la mutation en file ; le Future porte son résultat ou l'erreur d'écriture."""
        return self._writer.submit(self._apply, mutation, on_commit)

    def _apply(self, mutation: Mutation, on_commit: Optional[Callable[[Any], None]]):
        base = self.snapshot()
        try:
            new_records, result = mutation(base)
        except Exception:
            log.exception("mutation de %s rejetée", self.key)
            raise
        if new_records is None:
            return result
        self._write(new_records)
        with self._lock:
            self._records = list(new_records)
        if on_commit is not None:
            on_commit(result)
        return result

    def _write(self, records: List[T]) -> None:
        payload = self.dumps(records)
        try:
            self.gateway.set(self.key, payload)
        except PersistenceError:
            log.exception("écriture de %s échouée", self.key)
            raise
        except Exception as e:
            log.exception("écriture de %s échouée", self.key)
            raise PersistenceError(self.key, str(e)) from e

    def flush(self) -> None:
        """Attend la fin des écritures déjà en file."""
        self._writer.submit(lambda: None).result()

    def close(self) -> None:
        self._writer.shutdown(wait=True)
