from __future__ import annotations

import glob
import logging
import os
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from invoicing.errors import CorruptDataError, PersistenceError

log = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Stockage durable de chaînes, indexé par clé."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    def quarantine(self, key: str) -> None:
        """Conserve une copie d'un contenu jugé corrompu (rien par défaut)."""


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})
        self.quarantined: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def quarantine(self, key: str) -> None:
        if key in self.data:
            self.quarantined[key] = self.data[key]


class JsonFileKeyValueStore(KeyValueStore):
    """
    Un fichier <clé>.json par clé dans `directory`.
    - Rotation de backups (backup_enabled, backup_keep)
    - N'écrit pas si le contenu ne change pas (réduction du bruit et des .bak)
    - Écriture via fichier temporaire puis remplacement
    """

    def __init__(
        self,
        directory: Union[str, Path],
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    # ---------------- I/O bas niveau ---------------- #

    def get(self, key: str) -> Optional[str]:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise CorruptDataError(key, f"encodage invalide: {e}") from e
        except OSError as e:
            raise PersistenceError(key, f"lecture impossible: {e}") from e

    def _backup_files(self, key: str) -> list[str]:
        return sorted(glob.glob(str(self.directory / f"{glob.escape(key)}.*.bak.json")))

    def _rotate_backups(self, key: str) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        files = self._backup_files(key)
        # garde les plus récents
        if len(files) > self.backup_keep:
            for old in files[: len(files) - self.backup_keep]:
                try:
                    Path(old).unlink(missing_ok=True)
                except OSError as e:
                    log.warning("backup non supprimé (%s): %s", old, e)

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        with self._lock:
            # si contenu identique → ne rien faire
            if path.exists():
                try:
                    if path.read_text(encoding="utf-8") == value:
                        return
                except (OSError, UnicodeDecodeError):
                    pass

            # backup
            if self.backup_enabled and self.backup_keep > 0 and path.exists():
                ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                try:
                    shutil.copy2(path, path.with_suffix(f".{ts}.bak.json"))
                except OSError as e:
                    log.warning("backup impossible pour %s: %s", path, e)
                self._rotate_backups(key)

            # write
            tmp: Optional[str] = None
            try:
                fd, tmp = tempfile.mkstemp(dir=str(self.directory), prefix=f".{key}.", suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp, path)
            except OSError as e:
                if tmp:
                    Path(tmp).unlink(missing_ok=True)
                raise PersistenceError(key, f"écriture impossible: {e}") from e

    def quarantine(self, key: str) -> None:
        path = self.path_for(key)
        if not path.exists():
            return
        try:
            shutil.copy2(path, path.with_suffix(".corrupt.json"))
        except OSError as e:
            log.warning("copie du fichier corrompu impossible (%s): %s", path, e)
