"""Persistence boundary: collections saved per organization and kind."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from typing import Any, Dict, List, Optional, Protocol

from condoledger.errors import PersistenceError

logger = logging.getLogger(__name__)

KINDS = ("expenses", "incomes", "bankAccounts")


def storage_key(kind: str, condo_name: str) -> str:
    if kind not in KINDS:
        raise ValueError(f"Unknown collection kind {kind!r}")
    slug = re.sub(r"\s", "_", condo_name)
    return f"condo_{kind}_{slug}"


class Store(Protocol):
    def load(self, key: str) -> Optional[List[Dict[str, Any]]]: ...

    def save(self, key: str, collection: List[Dict[str, Any]]) -> None: ...


class MemoryStore:
    """Dict-backed store; ``quota`` (bytes of JSON) simulates a full browser storage."""

    def __init__(self, quota: Optional[int] = None) -> None:
        self.quota = quota
        self._data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[List[Dict[str, Any]]]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def save(self, key: str, collection: List[Dict[str, Any]]) -> None:
        raw = json.dumps(collection, ensure_ascii=False)
        used = sum(len(v) for k, v in self._data.items() if k != key)
        if self.quota is not None and used + len(raw) > self.quota:
            raise PersistenceError(f"Storage quota exceeded while saving {key}")
        self._data[key] = raw


class JsonFileStore:
    """One JSON file per key under ``directory``."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def load(self, key: str) -> Optional[List[Dict[str, Any]]]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read %s: %s", path, e)
            return None
        return data if isinstance(data, list) else None

    def save(self, key: str, collection: List[Dict[str, Any]]) -> None:
        path = self._path(key)
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.directory, delete=False, suffix=".part"
            ) as fh:
                tmp_path = fh.name
                json.dump(collection, fh, ensure_ascii=False)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceError(f"Could not save {key}: {e}") from e
