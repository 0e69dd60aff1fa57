"""
Error types shared by the API clients, import pipelines and the gateway.
"""
from typing import List, Optional


class BackendAPIError(RuntimeError):
    """A backend or forecast-service call failed (non-2xx or transport error)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url
        self.body = body


class ImportFileError(ValueError):
    """The uploaded file, or a sheet inside it, cannot be imported."""


class ImportValidationError(ImportFileError):
    """One or more rows / batches were rejected; ``details`` lists each one."""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])
