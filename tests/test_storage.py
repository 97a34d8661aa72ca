"""Tests for receipt_capture.storage: object paths, LocalStorage and JsonlRecordStore."""

import json
from datetime import datetime
from pathlib import Path

import pytest

from receipt_capture.errors import PersistError, UploadError
from receipt_capture.storage import (
    ExpenseRecord,
    JsonlRecordStore,
    LocalStorage,
    capture_paths,
)

WHEN = datetime(2024, 5, 17, 9, 3, 7)


def _record(**overrides) -> ExpenseRecord:
    values = dict(
        task_id=12,
        amount=1500.0,
        description="Cemento",
        date="2024-05-17",
        category="material",
        entry_method="camara",
    )
    values.update(overrides)
    return ExpenseRecord(**values)


# ── Object paths ───────────────────────────────────────────────────────────


class TestCapturePaths:
    def test_original_path(self):
        assert capture_paths(12, WHEN).original == "comprobantes/tarea_12/tarea12_20240517_090307.jpg"

    def test_processed_path(self):
        assert (
            capture_paths(12, WHEN).processed
            == "comprobantes/tarea_12/procesados/tarea12_20240517_090307_procesado.jpg"
        )

    def test_original_keeps_source_extension(self):
        assert capture_paths(3, WHEN, ".PNG").original.endswith("tarea3_20240517_090307.png")

    def test_processed_is_always_jpeg(self):
        assert capture_paths(3, WHEN, "png").processed.endswith("_procesado.jpg")

    def test_empty_extension_defaults_to_jpg(self):
        assert capture_paths(3, WHEN, "").original.endswith(".jpg")


# ── LocalStorage ───────────────────────────────────────────────────────────


class TestLocalStorage:
    def test_writes_bytes_below_root(self, tmp_path: Path):
        storage = LocalStorage(tmp_path)
        storage.upload("comprobantes/tarea_1/a.jpg", b"jpeg", "image/jpeg")
        assert (tmp_path / "comprobantes" / "tarea_1" / "a.jpg").read_bytes() == b"jpeg"

    def test_returns_file_url(self, tmp_path: Path):
        url = LocalStorage(tmp_path).upload("x/a.jpg", b"jpeg", "image/jpeg")
        assert url.startswith("file://")
        assert url.endswith("/x/a.jpg")

    def test_refuses_to_overwrite(self, tmp_path: Path):
        storage = LocalStorage(tmp_path)
        storage.upload("a.jpg", b"first", "image/jpeg")
        with pytest.raises(UploadError, match="already exists"):
            storage.upload("a.jpg", b"second", "image/jpeg")
        assert (tmp_path / "a.jpg").read_bytes() == b"first"

    def test_unwritable_root_raises_upload_error(self, tmp_path: Path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        with pytest.raises(UploadError):
            LocalStorage(blocker).upload("a.jpg", b"jpeg", "image/jpeg")


# ── JsonlRecordStore ───────────────────────────────────────────────────────


class TestJsonlRecordStore:
    def test_appends_one_line_per_record(self, tmp_path: Path):
        store = JsonlRecordStore(tmp_path / "gastos.jsonl")
        store.insert_expense(_record())
        store.insert_expense(_record(description="Arena"))
        lines = (tmp_path / "gastos.jsonl").read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["description"] for line in lines] == ["Cemento", "Arena"]

    def test_returns_unique_ids(self, tmp_path: Path):
        store = JsonlRecordStore(tmp_path / "gastos.jsonl")
        assert store.insert_expense(_record()) != store.insert_expense(_record())

    def test_line_contains_id_and_fields(self, tmp_path: Path):
        store = JsonlRecordStore(tmp_path / "gastos.jsonl")
        record_id = store.insert_expense(_record(receipt_url="file:///r.jpg"))
        row = json.loads((tmp_path / "gastos.jsonl").read_text(encoding="utf-8"))
        assert row["id"] == record_id
        assert row["amount"] == 1500.0
        assert row["receipt_url"] == "file:///r.jpg"
        assert row["processed_url"] is None

    def test_non_ascii_kept_readable(self, tmp_path: Path):
        store = JsonlRecordStore(tmp_path / "gastos.jsonl")
        store.insert_expense(_record(description="Ferretería"))
        assert "Ferretería" in (tmp_path / "gastos.jsonl").read_text(encoding="utf-8")

    def test_unwritable_path_raises_persist_error(self, tmp_path: Path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        with pytest.raises(PersistError):
            JsonlRecordStore(blocker / "gastos.jsonl").insert_expense(_record())
