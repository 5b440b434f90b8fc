"""
Pass results returned by the importers. Only the top items report is persisted.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from .base import DocumentModel


class HeaderPassResult(BaseModel):
    """
    Outcome of the invoice header pass.

    The in-window state travels separately (see InvoiceWindowState); this
    model only carries counters.
    """

    file: str
    cutoff: date
    rows_read: int = 0
    written: int = 0
    skipped_missing_key: int = 0
    skipped_out_of_window: int = 0
    skipped_malformed: int = 0
    in_window: int = 0


class LinePassResult(BaseModel):
    file: str
    rows_read: int = 0
    written: int = 0
    skipped_missing_key: int = 0
    skipped_not_in_range: int = 0
    skipped_no_item: int = 0
    skipped_malformed: int = 0
    merchandise_totals: dict[str, float] = Field(default_factory=dict, repr=False)


class TotalsResult(BaseModel):
    updated: int = 0


class IndexBuildResult(BaseModel):
    cutoff: date
    header_rows: int = 0
    invoices_mapped: int = 0
    line_rows: int = 0
    lines_used: int = 0
    entries_written: int = 0


class InvoiceImportResult(BaseModel):
    headers: HeaderPassResult
    lines: LinePassResult
    totals: TotalsResult
    index: IndexBuildResult | None = None


class CustomerImportResult(BaseModel):
    file: str
    rows_read: int = 0
    written: int = 0
    skipped_missing_key: int = 0
    skipped_malformed: int = 0
    buyer_emails: int = 0


class BackfillResult(BaseModel):
    invoices_scanned: int = 0
    lines_updated: int = 0


class TopItem(DocumentModel):
    item_code: str
    qty: float = 0.0
    sales: float = 0.0
    lines: int = 0
    description: str = ""


class TopItemsResult(DocumentModel):
    """Stored at companyStats/topItems_{days}d."""

    days_back: int
    top_n: int
    scanned_invoices: int = 0
    metric: Literal["sales", "qty", "lines"] = "lines"
    excluded_codes: list[str] = Field(default_factory=list)
    items: list[TopItem] = Field(default_factory=list)
