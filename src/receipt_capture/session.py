"""Per-capture state machine.

Transitions:

* Idle, Completed -> Capturing: the user picks camera, file or manual entry.
* Capturing -> Processing -> AwaitingConfirmation: a file is supplied.
  Rejected files go back to Idle.
* Capturing -> AwaitingConfirmation: manual entry, no image.
* AwaitingConfirmation -> Capturing: discard and retake.
* AwaitingConfirmation -> Saving -> Completed: confirm.
* Saving -> Failed -> AwaitingConfirmation: upload or persist error.

Pixel work runs synchronously inside ``supply``.  Field extraction runs as an
asyncio task in a worker thread and never blocks confirmation; at most one
extraction is in flight, a new request cancels the previous one, and results
arriving after the user confirmed are dropped.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Callable, Optional

from receipt_capture.enhance import EnhancementMode
from receipt_capture.errors import (
    DecodeError,
    ExtractionError,
    FormValidationError,
    InvalidTransition,
    PersistError,
    UploadError,
)
from receipt_capture.fields import (
    AMOUNT,
    CATEGORY,
    DATE,
    DESCRIPTION,
    ExtractedFields,
    merge_into_form,
)
from receipt_capture.pipeline import (
    ProcessedCapture,
    build_extraction_payload,
    encode_for_archive,
    process_capture,
)
from receipt_capture.postprocessing import parse_amount
from receipt_capture.providers.base import BaseExtractor
from receipt_capture.storage import (
    BaseRecordStore,
    BaseStorage,
    CapturePaths,
    ExpenseRecord,
    capture_paths,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_CATEGORY = "material"
ARCHIVE_CONTENT_TYPE = "image/jpeg"


class CaptureState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SAVING = "saving"
    COMPLETED = "completed"
    FAILED = "failed"


class EntryMethod(str, Enum):
    CAMERA = "camara"
    FILE = "archivo"
    MANUAL = "manual"


@dataclass
class SavedExpense:
    record_id: str
    receipt_url: Optional[str] = None
    processed_url: Optional[str] = None


def blank_form(today: datetime) -> dict[str, str]:
    return {
        AMOUNT: "",
        DESCRIPTION: "",
        DATE: today.date().isoformat(),
        CATEGORY: DEFAULT_CATEGORY,
    }


class CaptureSession:
    """Owns one capture from file selection until the expense is saved.

    The enhancement mode is passed in by the caller, who is also responsible
    for persisting it as a user preference.
    """

    def __init__(
        self,
        task_id: int,
        mode: EnhancementMode = EnhancementMode.STRONG,
        *,
        extractor: Optional[BaseExtractor] = None,
        storage: Optional[BaseStorage] = None,
        records: Optional[BaseRecordStore] = None,
        auto_extract: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.task_id = task_id
        self.mode = mode
        self.extractor = extractor
        self.storage = storage
        self.records = records
        self.auto_extract = auto_extract
        self.clock = clock

        self.state = CaptureState.IDLE
        self.history: list[CaptureState] = [CaptureState.IDLE]
        self.entry: Optional[EntryMethod] = None
        self._extraction_task: Optional[asyncio.Task] = None
        self._reset_capture()

    # ── State helpers ─────────────────────────────────────────────────────

    def _enter(self, state: CaptureState) -> None:
        LOGGER.debug("Capture %s: %s -> %s", self.task_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _require(self, *states: CaptureState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransition(f"Cannot do that while {self.state.value} (needs {allowed})")

    def _reset_capture(self) -> None:
        self._cancel_extraction()
        self.original_bytes: Optional[bytes] = None
        self.media_type: Optional[str] = None
        self.filename: Optional[str] = None
        self.capture: Optional[ProcessedCapture] = None
        self.processed_jpeg: Optional[bytes] = None
        self.extracted: Optional[ExtractedFields] = None
        self.extraction_error: Optional[ExtractionError] = None
        self.last_error: Optional[Exception] = None
        self.form = blank_form(self.clock())
        self._payload: Optional[bytes] = None
        self._paths: Optional[CapturePaths] = None
        self._uploaded: dict[str, str] = {}

    # ── Capture ───────────────────────────────────────────────────────────

    def begin(self, entry: EntryMethod) -> None:
        self._require(
            CaptureState.IDLE,
            CaptureState.CAPTURING,
            CaptureState.AWAITING_CONFIRMATION,
            CaptureState.COMPLETED,
        )
        self._reset_capture()
        self.entry = entry
        self._enter(CaptureState.CAPTURING)

    def supply(
        self,
        data: bytes,
        media_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ProcessedCapture:
        """Process a captured file and move on to confirmation.

        Decode errors send the session back to ``IDLE`` and are re-raised.
        When an extractor is configured and an event loop is running, field
        extraction is started in the background.
        """
        self._require(CaptureState.CAPTURING)
        if media_type is None and filename:
            media_type = mimetypes.guess_type(filename)[0]
        self._enter(CaptureState.PROCESSING)

        try:
            capture = process_capture(data, self.mode, media_type)
        except DecodeError as e:
            LOGGER.warning("Rejected capture %s: %s", filename or "<bytes>", e)
            self.last_error = e
            self._enter(CaptureState.IDLE)
            raise

        self.original_bytes = data
        self.media_type = media_type
        self.filename = filename
        self.capture = capture
        self.processed_jpeg = encode_for_archive(capture.processed)
        self._enter(CaptureState.AWAITING_CONFIRMATION)

        if self.auto_extract and self.extractor is not None and _loop_running():
            self.request_extraction()
        return capture

    def enter_manually(self) -> None:
        """Skip the photo and go straight to the form."""
        self._require(CaptureState.CAPTURING)
        self._enter(CaptureState.AWAITING_CONFIRMATION)

    def discard(self) -> None:
        """Drop the current photo so the user can retake it."""
        self._require(CaptureState.AWAITING_CONFIRMATION)
        self._reset_capture()
        self._enter(CaptureState.CAPTURING)

    def update_form(self, **values: str) -> dict[str, str]:
        unknown = set(values) - set(self.form)
        if unknown:
            raise ValueError(f"Unknown form fields: {', '.join(sorted(unknown))}")
        self.form.update({key: str(value) for key, value in values.items() if value is not None})
        return self.form

    # ── Extraction ────────────────────────────────────────────────────────

    @property
    def extraction_pending(self) -> bool:
        return self._extraction_task is not None and not self._extraction_task.done()

    def request_extraction(self) -> "asyncio.Task[Optional[ExtractedFields]]":
        """Start (or restart) field extraction for the current capture.

        Must be called from a running event loop.  An extraction already in
        flight is cancelled first so only the newest request can merge.
        """
        self._require(CaptureState.AWAITING_CONFIRMATION)
        if self.extractor is None:
            raise RuntimeError("No extractor configured for this session")
        if self.capture is None:
            raise InvalidTransition("Manual entries have no image to analyse")

        if self._payload is None:
            self._payload = build_extraction_payload(self.capture.processed)

        self._cancel_extraction()
        self.extraction_error = None
        task = asyncio.get_running_loop().create_task(self._extract(self._payload))
        self._extraction_task = task
        return task

    async def wait_for_extraction(self) -> Optional[ExtractedFields]:
        task = self._extraction_task
        if task is None:
            return None
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            raise

    async def _extract(self, payload: bytes) -> Optional[ExtractedFields]:
        assert self.extractor is not None
        try:
            fields = await asyncio.to_thread(self.extractor.extract, payload)
        except ExtractionError as e:
            LOGGER.warning("Field extraction failed, form left for manual entry: %s", e)
            if asyncio.current_task() is self._extraction_task:
                self.extraction_error = e
            return None
        except Exception as e:
            LOGGER.exception("Extractor raised an unexpected error; form left for manual entry")
            if asyncio.current_task() is self._extraction_task:
                self.extraction_error = ExtractionError(f"Unexpected extractor error: {e}")
                self.extraction_error.__cause__ = e
            return None

        if asyncio.current_task() is not self._extraction_task:
            LOGGER.info("Dropping extraction result superseded by a newer request")
            return None
        if self.state is not CaptureState.AWAITING_CONFIRMATION:
            LOGGER.info("Dropping extraction result that arrived after confirmation")
            return None

        self.extracted = fields
        self.form = merge_into_form(self.form, fields)
        LOGGER.info("Extracted fields: %s", fields.as_form_values())
        return fields

    def _cancel_extraction(self) -> None:
        task = self._extraction_task
        if task is not None and not task.done():
            task.cancel()
        self._extraction_task = None

    # ── Saving ────────────────────────────────────────────────────────────

    def _validated_record(self) -> ExpenseRecord:
        amount = parse_amount(self.form.get(AMOUNT))
        description = (self.form.get(DESCRIPTION) or "").strip()
        if amount is None or amount <= 0:
            raise FormValidationError("A valid amount greater than zero is required")
        if not description:
            raise FormValidationError("A description is required")
        return ExpenseRecord(
            task_id=self.task_id,
            amount=amount,
            description=description,
            date=self.form.get(DATE) or self.clock().date().isoformat(),
            category=self.form.get(CATEGORY) or DEFAULT_CATEGORY,
            entry_method=(self.entry or EntryMethod.MANUAL).value,
        )

    def _original_extension(self) -> str:
        if self.filename and PurePath(self.filename).suffix:
            return PurePath(self.filename).suffix
        guessed = mimetypes.guess_extension(self.media_type or "") if self.media_type else None
        return guessed or ".jpg"

    async def _upload_images(self) -> None:
        if self.capture is None:
            return
        assert self.storage is not None
        if self._paths is None:
            self._paths = capture_paths(self.task_id, self.clock(), self._original_extension())

        uploads = (
            ("original", self._paths.original, self.original_bytes, self.media_type or ARCHIVE_CONTENT_TYPE),
            ("processed", self._paths.processed, self.processed_jpeg, ARCHIVE_CONTENT_TYPE),
        )
        for key, path, data, content_type in uploads:
            if key in self._uploaded:
                continue
            self._uploaded[key] = await asyncio.to_thread(self.storage.upload, path, data, content_type)

    def _fail(self, error: Exception) -> None:
        self.last_error = error
        self._enter(CaptureState.FAILED)
        self._enter(CaptureState.AWAITING_CONFIRMATION)

    async def save(self) -> SavedExpense:
        """Upload both images, persist the expense and complete the capture.

        Upload and persist failures leave the session awaiting confirmation so
        the user can retry without re-capturing.  Images already uploaded are
        reused on retry.  A persist failure does not delete them.
        """
        self._require(CaptureState.AWAITING_CONFIRMATION)
        record = self._validated_record()
        if self.records is None:
            raise RuntimeError("No record store configured for this session")
        if self.capture is not None and self.storage is None:
            raise RuntimeError("No storage configured for this session")

        self._cancel_extraction()
        self._enter(CaptureState.SAVING)

        try:
            await self._upload_images()
        except UploadError as e:
            LOGGER.error("Upload failed for task %s: %s", self.task_id, e)
            self._fail(e)
            raise
        except Exception as e:
            LOGGER.exception("Unexpected upload error for task %s", self.task_id)
            self._fail(e)
            raise

        record.receipt_url = self._uploaded.get("original")
        record.processed_url = self._uploaded.get("processed")
        try:
            record_id = await asyncio.to_thread(self.records.insert_expense, record)
        except PersistError as e:
            LOGGER.error(
                "Expense not saved for task %s; uploaded objects remain at %s",
                self.task_id,
                ", ".join(self._uploaded.values()) or "<none>",
            )
            self._fail(e)
            raise
        except Exception as e:
            LOGGER.exception("Unexpected error saving expense for task %s", self.task_id)
            self._fail(e)
            raise

        self._enter(CaptureState.COMPLETED)
        LOGGER.info("Saved expense %s for task %s", record_id, self.task_id)
        return SavedExpense(
            record_id=record_id,
            receipt_url=record.receipt_url,
            processed_url=record.processed_url,
        )


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
