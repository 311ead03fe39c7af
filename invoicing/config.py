from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

log = logging.getLogger(__name__)

# --- Chemins de base ---
ROOT_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = ROOT_DIR / "data"
SETTINGS_JSON = DATA_DIR / "settings.json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    data_dir: Path = DATA_DIR

    # clés du stockage clé/valeur
    clients_key: str = "invoice_clients"
    invoices_key: str = "invoice_invoices"
    sequence_key: str = "invoice_sequence"

    # numérotation
    invoice_prefix: str = "INV-"
    invoice_number_width: int = 3

    # backups des fichiers JSON
    backup_enabled: bool = True
    backup_keep: int = 5

    # textes de partage
    business_name: str = "Your Business"
    currency_symbol: str = "$"

    log_level: str = "INFO"

    class Config:
        extra = "ignore"  # tolère d'anciennes clés dans settings.json


def _load_json(path: os.PathLike | str):
    p = Path(path)
    if not p.exists():
        return None
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("settings illisibles (%s): %s", p, e)
        return None


def load_settings(path: Optional[os.PathLike | str] = None) -> Settings:
    """
    Construit les Settings :
    - `path`, sinon settings.json du dossier de données, si présent
    - variables d'env INVOICING_DATA_DIR, INVOICING_LOG_LEVEL (ou LOG_LEVEL)
    """
    env_dir = os.environ.get("INVOICING_DATA_DIR")
    if path is None:
        path = Path(env_dir) / "settings.json" if env_dir else SETTINGS_JSON
    raw = _load_json(path)
    data = raw if isinstance(raw, dict) else {}

    if env_dir:
        data["data_dir"] = env_dir
    env_level = os.environ.get("INVOICING_LOG_LEVEL") or os.environ.get("LOG_LEVEL")
    if env_level:
        data["log_level"] = env_level

    try:
        return Settings(**data)
    except ValidationError as e:
        log.warning("settings invalides, valeurs par défaut utilisées: %s", e)
        return Settings()


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
