"""
Local Snapshot Storage

The on-device copy of the bill collection and the group list.

DESIGN DECISION: Snapshot reads and writes go through one repository
object owned by the orchestrator, instead of being scattered over the
application lifecycle. Keys and serialization live in one place.

Decoding errors are NOT swallowed: a corrupt snapshot is a bug to fix,
not a condition to paper over with seed data.
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import TypeAdapter

from bill_tracker.models.bill import Bill
from bill_tracker.services.storage.interface import SnapshotStore


_BILL_LIST = TypeAdapter(list[Bill])


class JsonFileSnapshotStore(SnapshotStore):
    """Stores each key as <directory>/<key>.json."""

    def __init__(self, directory: Union[str, Path]):
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        # Atomic replace
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)


class MemorySnapshotStore(SnapshotStore):
    """Dict-backed snapshot store for tests and ephemeral sessions."""

    def __init__(self, values: Optional[dict[str, str]] = None):
        self.values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class LocalRepository:
    """
    Typed access to the two snapshot keys.

    Only the orchestrator holds one of these.
    """

    def __init__(
        self,
        store: SnapshotStore,
        bills_key: str = "gestor_contas_data",
        groups_key: str = "gestor_contas_groups",
    ):
        self._store = store
        self._bills_key = bills_key
        self._groups_key = groups_key

    def load_bills(self) -> Optional[list[Bill]]:
        """The saved bill collection, or None if nothing was ever saved."""
        raw = self._store.get(self._bills_key)
        if raw is None:
            return None
        return _BILL_LIST.validate_json(raw)

    def save_bills(self, bills: list[Bill]) -> None:
        self._store.set(self._bills_key, _BILL_LIST.dump_json(bills).decode("utf-8"))

    def load_groups(self) -> Optional[list[str]]:
        """The saved group list, or None if nothing was ever saved."""
        raw = self._store.get(self._groups_key)
        if raw is None:
            return None
        groups = json.loads(raw)
        if not isinstance(groups, list) or not all(isinstance(g, str) for g in groups):
            raise ValueError(f"Malformed group snapshot under key {self._groups_key!r}")
        return groups

    def save_groups(self, groups: list[str]) -> None:
        self._store.set(self._groups_key, json.dumps(groups, ensure_ascii=False))
