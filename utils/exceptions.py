"""
Error taxonomy for record processing.

Row-level errors are caught at the row boundary by the batch runner and turned
into failure report entries. The same classes raised outside a row (download,
parse, status report) are batch-level failures.
"""


class ProcessingError(Exception):
    """Base class for all processing errors."""


class ValidationError(ProcessingError):
    """Malformed inbound event or malformed row. Never retried."""


class NotFoundError(ProcessingError):
    """A referenced entity does not exist."""


class ConflictError(ProcessingError):
    """A lookup matched more than one record and none matched the filter exactly."""


class UpstreamError(ProcessingError):
    """A collaborator call (HTTP, S3, spreadsheet parsing) failed."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
