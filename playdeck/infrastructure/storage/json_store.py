import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

from playdeck.domain.errors import StoreError
from playdeck.domain.ports import PersistentStore


logger = logging.getLogger(__name__)


class JsonFileStore(PersistentStore):
    """PersistentStore kept in a single JSON document on disk.

    Every ``get`` reads the file and every ``set`` rewrites it, so nothing is
    cached between calls. Writes go through a temporary file and an atomic
    rename. There is no cross-process locking: concurrent writers from two
    processes can overwrite each other.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def get(self, key: str, default: Any = None) -> Any:
        data = self._load()
        value = data.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._save(data)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise StoreError(f"Failed to load state from {self.path}: {e}")
        if not isinstance(data, dict):
            raise StoreError(f"State file {self.path} does not contain a JSON object")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix='.state-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except (IOError, OSError, TypeError) as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreError(f"Failed to save state to {self.path}: {e}")
        logger.debug(f"Saved state to {self.path}")


class MemoryStore(PersistentStore):
    """In-memory PersistentStore for tests and throwaway sessions."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._data: Dict[str, Any] = json.loads(json.dumps(initial or {}))

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key)
        # Values are copied in and out; callers never alias stored data
        return default if value is None else json.loads(json.dumps(value))

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = json.loads(json.dumps(value))
