"""Exceptions raised by the capture pipeline and its collaborators."""


class CaptureError(Exception):
    """Base class for every recoverable capture-flow error."""


class DecodeError(CaptureError):
    """The supplied bytes could not be turned into a pixel buffer."""


class UnsupportedFormat(DecodeError):
    """The input is not an image, or its codec is not recognised."""


class DecodeFailure(DecodeError):
    """The codec was recognised but the stream is corrupt or truncated."""


class ExtractionError(CaptureError):
    """The field-extraction service failed. Never fatal to a capture."""


class UploadError(CaptureError):
    """Object storage rejected an upload."""


class PersistError(CaptureError):
    """The expense record could not be written after a successful upload."""


class FormValidationError(CaptureError):
    """The confirmation form is missing required values."""


class InvalidTransition(CaptureError):
    """A session operation was invoked from a state that does not allow it."""
