"""
Company-wide top items over a trailing number of days.

Reads stored invoices (newest first) and their lines, aggregates quantity,
sales and line count per item code, and writes the ranking to
companyStats/topItems_{days}d.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.models import TopItem, TopItemsResult
from sales_index.core.normalize import clean_str, parse_amount
from sales_index.observability.logger import get_logger
from sales_index.store.base import Document, DocumentStore, Filter, Query, field_value

from .header_importer import INVOICES_COLLECTION
from .line_importer import LINES_COLLECTION

logger = get_logger(__name__)

STATS_COLLECTION = "companyStats"

PAGE_SIZE = 500
MAX_INVOICES = 25_000

ITEM_FIELDS = ("itemCode", "raw.ItemCode", "raw.Item")
DESC_FIELDS = ("itemCodeDesc", "raw.ItemCodeDesc")
QTY_FIELDS = ("quantityShipped", "raw.QuantityShipped", "raw.QtyShipped", "raw.Qty")
SALES_FIELDS = ("extensionAmt", "raw.ExtensionAmt", "raw.Extension", "raw.ExtAmt")


def pick_first(data: dict[str, Any], fields: Iterable[str]) -> Any:
    """First non-blank value among dotted field paths."""
    for path in fields:
        value = field_value(data, path)
        if value is not None and clean_str(value) != "":
            return value
    return None


@dataclass
class _Tally:
    qty: float = 0.0
    sales: float = 0.0
    lines: int = 0
    description: str = ""


@dataclass
class TopItemsReport:
    """
    Attributes:
        days_back: Trailing window in days
        top_n: Items to keep
        excluded_codes: Item codes never ranked (upper-case)
        excluded_prefixes: Description prefixes never ranked (case-insensitive)
        max_invoices: Safety cap on invoices scanned
    """

    store: DocumentStore
    writer: BatchedWriter
    days_back: int = 60
    top_n: int = 5
    excluded_codes: tuple[str, ...] = ("170",)
    excluded_prefixes: tuple[str, ...] = ()
    max_invoices: int = MAX_INVOICES
    today: date | None = None
    _tallies: dict[str, _Tally] = field(default_factory=dict, init=False, repr=False)

    @property
    def doc_id(self) -> str:
        return f"topItems_{self.days_back}d"

    def run(self) -> TopItemsResult:
        """
        Compute and store the ranking.

        Sales rank first; when no line carries sales, quantity; when neither,
        line count.
        """
        self._tallies = {}
        cutoff = (self.today or date.today()) - timedelta(days=self.days_back)
        excluded = {c.strip().upper() for c in self.excluded_codes}
        scanned = 0

        logger.info(f"Computing top {self.top_n} items since {cutoff.isoformat()}")

        invoices = Query(
            INVOICES_COLLECTION,
            filters=(Filter("invoiceDate", ">=", cutoff.isoformat()),),
            order_by="invoiceDate",
            descending=True,
            limit=PAGE_SIZE,
        )
        for invoice in self.store.iter_query(invoices):
            scanned += 1
            self._tally_lines(invoice, excluded)
            if scanned >= self.max_invoices:
                logger.warning(f"Stopped after {scanned:,} invoices (cap reached)")
                break

        ranked = [
            TopItem(item_code=code, qty=t.qty, sales=t.sales, lines=t.lines, description=t.description)
            for code, t in self._tallies.items()
        ]
        if any(item.sales > 0 for item in ranked):
            metric = "sales"
        elif any(item.qty > 0 for item in ranked):
            metric = "qty"
        else:
            metric = "lines"
        ranked.sort(key=lambda item: (-getattr(item, metric), item.item_code))

        prefixes = tuple(p.strip().lower() for p in self.excluded_prefixes if p.strip())
        top = [
            item for item in ranked
            if not (prefixes and item.description.lower().startswith(prefixes))
        ][: self.top_n]

        result = TopItemsResult(
            days_back=self.days_back,
            top_n=self.top_n,
            scanned_invoices=scanned,
            metric=metric,
            excluded_codes=sorted(excluded),
            items=top,
        )
        self.writer.enqueue(STATS_COLLECTION, self.doc_id, result.to_document(), merge=False)
        self.writer.flush()

        logger.info(f"Wrote {STATS_COLLECTION}/{self.doc_id} (metric={metric}, items={len(top)})")
        return result

    def _tally_lines(self, invoice: Document, excluded: set[str]) -> None:
        for line in self.store.iter_query(Query(f"{invoice.path}/{LINES_COLLECTION}", limit=PAGE_SIZE)):
            code = clean_str(pick_first(line.data, ITEM_FIELDS)).upper()
            if not code or code in excluded:
                continue

            tally = self._tallies.setdefault(code, _Tally())
            tally.qty += parse_amount(pick_first(line.data, QTY_FIELDS))
            tally.sales += parse_amount(pick_first(line.data, SALES_FIELDS))
            tally.lines += 1
            if not tally.description:
                tally.description = clean_str(pick_first(line.data, DESC_FIELDS))
