"""
Report history for the VAPT Report Generator
Keeps the metadata of generated reports as a JSON array in a key-value text store,
newest first and capped at 50 entries
"""

import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import HISTORY_STORAGE_KEY
from db import KeyValueEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class PersistenceWarning(Exception):
    """The history store could not be written. Callers log this and carry on."""


@dataclass(frozen=True)
class ReportHistoryRecord:
    id: str
    name: str
    date: str
    report_type: str
    company_name: str
    assessment_type: str
    file_path: str
    size_bytes: int

    @classmethod
    def for_report(cls, filename: str, config, size_bytes: int, on: Optional[date] = None) -> "ReportHistoryRecord":
        """config is anything carrying company_name, assessment_type and report_type"""
        return cls(
            id=uuid.uuid4().hex,
            name=filename,
            date=(on or date.today()).isoformat(),
            report_type=config.report_type,
            company_name=config.company_name,
            assessment_type=config.assessment_type,
            file_path=f"report_history/{filename}",
            size_bytes=size_bytes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'date': self.date,
            'reportType': self.report_type,
            'companyName': self.company_name,
            'assessmentType': self.assessment_type,
            'filePath': self.file_path,
            'sizeBytes': self.size_bytes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportHistoryRecord":
        return cls(
            id=str(data['id']),
            name=str(data.get('name', '')),
            date=str(data.get('date', '')),
            report_type=str(data.get('reportType', '')),
            company_name=str(data.get('companyName', '')),
            assessment_type=str(data.get('assessmentType', '')),
            file_path=str(data.get('filePath', '')),
            size_bytes=int(data.get('sizeBytes') or 0),
        )


class MemoryKeyValueStore:
    def __init__(self):
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class FileKeyValueStore:
    """One file per key inside a directory"""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        try:
            with open(self._path(key), encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Failed to read {self._path(key)}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(self._path(key), "w", encoding="utf-8") as f:
                f.write(value)
        except OSError as e:
            raise PersistenceWarning(f"Failed to write {self._path(key)}: {e}") from e


class SqlKeyValueStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read key {key}: {e}")
            return None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            entry = db.get(KeyValueEntry, key)
            if entry is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceWarning(f"Failed to write key {key}: {e}") from e
        finally:
            db.close()


class ReportHistory:
    """
    Append-only log of generated reports, newest first.

    Reads tolerate a missing or corrupt store and return an empty list. Read-modify-write
    is not guarded; a single user in a single session is assumed.
    """

    def __init__(self, store, key: str = HISTORY_STORAGE_KEY, limit: int = DEFAULT_HISTORY_LIMIT):
        self.store = store
        self.key = key
        self.limit = limit

    def _read(self) -> List[Dict[str, Any]]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Error loading report history: stored value is not valid JSON")
            return []
        if not isinstance(data, list):
            logger.error("Error loading report history: stored value is not a list")
            return []
        return [item for item in data if isinstance(item, dict) and 'id' in item]

    def _write(self, items: List[Dict[str, Any]]) -> None:
        self.store.set(self.key, json.dumps(items))

    def list(self) -> List[ReportHistoryRecord]:
        records = []
        for item in self._read():
            try:
                records.append(ReportHistoryRecord.from_dict(item))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed history entry {item.get('id')}: {e}")
        return records

    def append(self, record: ReportHistoryRecord) -> List[ReportHistoryRecord]:
        items = self._read()
        items.insert(0, record.to_dict())
        self._write(items[:self.limit])
        logger.info(f"Report saved to history: {record.name}")
        return self.list()

    def delete_by_id(self, record_id: str) -> List[ReportHistoryRecord]:
        items = [item for item in self._read() if str(item.get('id')) != record_id]
        self._write(items)
        return self.list()


def create_history(config: Dict[str, Any], session_factory: Optional[Callable[[], Session]] = None) -> ReportHistory:
    """Build the history for the configured backend"""
    backend = config['history_backend']
    if backend == 'memory':
        store = MemoryKeyValueStore()
    elif backend == 'file':
        store = FileKeyValueStore(config['history_dir'])
    else:
        if session_factory is None:
            from db import SessionLocal
            session_factory = SessionLocal
        store = SqlKeyValueStore(session_factory)
    return ReportHistory(store, limit=int(config['history_limit']))
