"""JSON-file persistence for the command-line and HTTP entry points.

Data is loaded from ``practitioners.json``, ``schedules.json`` and
``appointments.json`` inside the data directory. Missing files are tolerated
so the engine can run before the datasets have been populated; malformed
rows are skipped with a warning.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, List, Mapping, MutableMapping, Optional, TypeVar

from .records import Appointment, Practitioner, WorkingSchedule
from .store import InMemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def default_data_dir() -> Path:
    """Return the configured data directory (``DATA_DIR`` overrides it)."""

    override = os.getenv("DATA_DIR")
    return Path(override) if override else Path(__file__).resolve().parents[1] / "data"


class JsonDataRepository:
    """Loads records into an :class:`InMemoryStore` and writes appointments back."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else default_data_dir()
        self._practitioners_file = self._data_dir / "practitioners.json"
        self._schedules_file = self._data_dir / "schedules.json"
        self._appointments_file = self._data_dir / "appointments.json"
        self._write_lock = threading.Lock()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _load_collection(self, file_path: Path) -> List[MutableMapping[str, Any]]:
        if not file_path.exists():
            logger.warning("No dataset found at %s", file_path)
            return []
        raw_content = file_path.read_text(encoding="utf-8").strip()
        if not raw_content:
            return []
        try:
            payload = json.loads(raw_content)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON data in {file_path}: {exc.msg}") from exc
        if isinstance(payload, Mapping):
            # Keyed collections ({"<id>": {...}}) carry the id as the key.
            return [
                {"id": key, **value}
                for key, value in payload.items()
                if isinstance(value, MutableMapping)
            ]
        if isinstance(payload, list):
            return [item for item in payload if isinstance(item, MutableMapping)]
        raise ValueError(f"{file_path} must contain a JSON list or object of records.")

    def _parse_rows(
        self, rows: List[MutableMapping[str, Any]], parser: Callable[[Mapping[str, Any]], T], label: str
    ) -> List[T]:
        records: List[T] = []
        for row in rows:
            try:
                records.append(parser(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid %s row %s: %s", label, row, exc)
        logger.info("Loaded %d %s records", len(records), label)
        return records

    def load_practitioners(self) -> List[Practitioner]:
        return self._parse_rows(
            self._load_collection(self._practitioners_file), Practitioner.from_row, "practitioner"
        )

    def load_schedules(self) -> List[WorkingSchedule]:
        return self._parse_rows(
            self._load_collection(self._schedules_file), WorkingSchedule.from_row, "schedule"
        )

    def load_appointments(self) -> List[Appointment]:
        return self._parse_rows(
            self._load_collection(self._appointments_file), Appointment.from_row, "appointment"
        )

    def load_store(self) -> InMemoryStore:
        return InMemoryStore(
            practitioners=self.load_practitioners(),
            schedules=self.load_schedules(),
            appointments=self.load_appointments(),
        )

    def save_appointments(self, store: InMemoryStore) -> Path:
        rows = [appointment.to_row() for appointment in store.list_appointments()]
        serialized = json.dumps(rows, indent=2, sort_keys=True)
        with self._write_lock:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            temp_path = self._appointments_file.with_suffix(".json.tmp")
            temp_path.write_text(f"{serialized}\n", encoding="utf-8")
            temp_path.replace(self._appointments_file)
        logger.info("Wrote %d appointments to %s", len(rows), self._appointments_file)
        return self._appointments_file


__all__ = ["JsonDataRepository", "default_data_dir"]
