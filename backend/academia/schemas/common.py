from pydantic import BaseModel
from typing import List, Optional

from academia.core.config import settings
from academia.core.exceptions import ValidationError


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BulkRowResult(BaseModel):
    """Outcome of one item in a best-effort bulk request. Rows are 1-based."""
    row: int
    success: bool
    action: Optional[str] = None
    id: Optional[str] = None
    error: Optional[str] = None


class BulkResult(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[BulkRowResult]

    @classmethod
    def from_rows(cls, rows: List[BulkRowResult]) -> "BulkResult":
        succeeded = sum(1 for r in rows if r.success)
        return cls(total=len(rows), succeeded=succeeded, failed=len(rows) - succeeded, results=rows)

    @property
    def errors(self) -> List[BulkRowResult]:
        return [r for r in self.results if not r.success]


def ensure_bulk_limit(rows: List) -> None:
    """Reject oversized bulk payloads before any row is processed"""
    if len(rows) > settings.BULK_MAX_ITEMS:
        raise ValidationError(
            f"At most {settings.BULK_MAX_ITEMS} items per bulk request", field="items",
        )
