"""
Progress / result models shared by the import pipelines.
"""
import logging
import math
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ImportProgress(BaseModel):
    """Row / record level progress (sales import)."""

    current: int
    total: int
    percentage: int
    status: str  # "processing" | "completed" | "failed"
    message: Optional[str] = None
    errors: Optional[List[str]] = None


class BatchProgress(BaseModel):
    """Batch level progress (store import)."""

    current_batch: int
    total_batches: int
    processed_stores: int
    total_stores: int
    success_count: int
    error_count: int
    errors: List[str] = Field(default_factory=list)
    is_complete: bool = False


class BulkImportResult(BaseModel):
    success: bool
    total_processed: int
    success_count: int
    error_count: int
    errors: List[str] = Field(default_factory=list)
    message: str


class RowImportResult(BaseModel):
    """Outcome of a row-by-row import (raw materials)."""

    total: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    first_error: Optional[str] = None


def percentage(done: int, total: int) -> int:
    if total <= 0:
        return 0
    # halves round up
    return int(math.floor(done * 100 / total + 0.5))


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def notify(callback: Optional[Callable[[Any], None]], event: Any) -> None:
    """Fire a progress callback; a broken listener must not abort the import."""
    if callback is None:
        return
    try:
        callback(event)
    except Exception:
        logger.exception("Progress callback raised; continuing import")
