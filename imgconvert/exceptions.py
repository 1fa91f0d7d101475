"""Error taxonomy for the conversion service.

Request-level errors (`InvalidInputError`, `NotFoundError`, `RecordStoreError`)
abort a whole `/convert` call. Everything else is raised while processing a
single image and ends up as an error entry in the batch results.

Each class carries a short ``code`` used in log lines.
"""


class ConversionServiceError(Exception):
    """Base class for every error raised by the service."""

    code = "error"


class InvalidInputError(ConversionServiceError):
    code = "invalid_input"


class NotFoundError(ConversionServiceError):
    code = "not_found"


class RecordStoreError(ConversionServiceError):
    """The record store could not be read or written."""

    code = "record_store_error"


class BlobStoreError(ConversionServiceError):
    """A download or upload against the blob store could not be completed."""

    code = "blob_store_error"


class DownloadError(ConversionServiceError):
    code = "download_failed"


class ConversionError(ConversionServiceError):
    """The conversion tool did not produce an output file.

    Attributes:
        source_format: lower-cased source format tag
        stderr: diagnostic text captured from the tool (possibly truncated)
    """

    code = "conversion_failed"

    def __init__(self, message: str, source_format: str | None = None, stderr: str = ""):
        super().__init__(message)
        self.source_format = source_format
        self.stderr = stderr


class ConversionTimeout(ConversionError):
    code = "timeout"


class MissingDecoderError(ConversionError):
    code = "missing_decoder"


class ToolError(ConversionError):
    code = "tool_error"


class EmptyOutputError(ConversionServiceError):
    code = "empty_output"


class UploadError(ConversionServiceError):
    code = "upload_failed"


class PersistenceError(ConversionServiceError):
    code = "persistence_failed"
