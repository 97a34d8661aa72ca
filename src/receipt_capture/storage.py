"""Object storage and expense-record collaborators.

The capture session only talks to the two abstract bases.  ``LocalStorage``
and ``JsonlRecordStore`` back the command line's ``--store`` option.

Object paths are keyed by task and capture time::

    comprobantes/tarea_<id>/tarea<id>_<YYYYmmdd_HHMMSS>.<ext>
    comprobantes/tarea_<id>/procesados/tarea<id>_<YYYYmmdd_HHMMSS>_procesado.jpg
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Optional
from uuid import uuid4

from receipt_capture.errors import PersistError, UploadError

LOGGER = logging.getLogger(__name__)

ROOT_FOLDER = "comprobantes"


@dataclass(frozen=True)
class CapturePaths:
    original: str
    processed: str


def capture_paths(task_id: int, when: datetime, extension: str = "jpg") -> CapturePaths:
    stamp = when.strftime("%Y%m%d_%H%M%S")
    folder = PurePosixPath(ROOT_FOLDER) / f"tarea_{task_id}"
    extension = extension.lstrip(".").lower() or "jpg"
    return CapturePaths(
        original=str(folder / f"tarea{task_id}_{stamp}.{extension}"),
        processed=str(folder / "procesados" / f"tarea{task_id}_{stamp}_procesado.jpg"),
    )


@dataclass
class ExpenseRecord:
    task_id: int
    amount: float
    description: str
    date: str
    category: str
    entry_method: str
    receipt_url: Optional[str] = None
    processed_url: Optional[str] = None


class BaseStorage(ABC):
    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store *data* at *path* and return its public URL.

        Raises ``UploadError`` on failure.
        """
        ...


class BaseRecordStore(ABC):
    @abstractmethod
    def insert_expense(self, record: ExpenseRecord) -> str:
        """Persist *record* and return its id.  Raises ``PersistError``."""
        ...


class LocalStorage(BaseStorage):
    """Writes objects below a directory and hands back ``file://`` URLs."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = self.root / PurePosixPath(path)
        if target.exists():
            raise UploadError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise UploadError(f"Could not write {path}: {e}") from e
        LOGGER.info("Stored %s (%s, %d bytes)", path, content_type, len(data))
        return target.resolve().as_uri()


class JsonlRecordStore(BaseRecordStore):
    """Appends expense records to a JSON-lines file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def insert_expense(self, record: ExpenseRecord) -> str:
        record_id = uuid4().hex
        line = json.dumps({"id": record_id, **asdict(record)}, ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as e:
            raise PersistError(f"Could not append to {self.path}: {e}") from e
        return record_id
