"""
"Who bought item X" and "which similar accounts have not" lookups.

Buyers come from the precomputed itemCustomerIndex when an entry exists
for (item, salesperson); otherwise from a live join
line -> invoice -> customer. Tiers are computed from trailing sales at
read time. The service keeps no state between calls.
"""

import time
from typing import Any, Iterable

from sales_index.batch.importers.index_builder import INDEX_COLLECTION, index_key
from sales_index.core.models import Account, ItemBuyersResult, LookupMeta
from sales_index.core.normalize import clean_str, sanitize_key
from sales_index.core.tiers import TIER_ORDER, Tier
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import (
    increment_counter,
    lookup_duration_seconds,
    lookup_requests_total,
    observe_histogram,
)
from sales_index.store.base import Document, DocumentStore, Filter, Query, encode_cursor
from sales_index.store.errors import StoreError
from sales_index.utils.validation import (
    validate_item_code,
    validate_opportunity_count,
    validate_salesperson_no,
    validate_tier,
)

logger = get_logger(__name__)

LINE_LIMIT = 1000
INVOICE_LIMIT = 500
CUSTOMER_LIMIT = 250
OWNER_SCAN_LIMIT = 2500
INDEX_SCAN_PAGE = 500
DESCRIPTION_LINE_SAMPLE = 25

DESCRIPTION_FIELDS = ("itemCodeDesc", "ItemCodeDesc", "item_code_desc", "description", "itemDescription", "desc")


class LookupServiceError(Exception):
    """The lookup could not be answered (store unreachable, permission, bad request)."""


def pick_description(data: dict[str, Any] | None) -> str | None:
    for field in DESCRIPTION_FIELDS:
        value = (data or {}).get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def best_per_tier(accounts: Iterable[Account]) -> list[Account]:
    """Highest trailing sales per tier, in A, B, C, D order; empty tiers omitted."""
    best: dict[Tier, Account] = {}
    for account in accounts:
        current = best.get(account.tier)
        if current is None or account.trailing_sales > current.trailing_sales:
            best[account.tier] = account
    return [best[tier] for tier in TIER_ORDER if tier in best]


def _unique(values: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return list(seen)


class ItemBuyersService:
    """
    Usage:
        service = ItemBuyersService(store)
        result = service.find_buyers("K233", "7", selected_tier="A", opportunity_count=3)
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def find_buyers(
        self,
        item_code: str,
        salesperson_no: str | None,
        one_per_tier: bool = False,
        selected_tier: str | Tier | None = None,
        opportunity_count: int = 4,
        use_index: bool = True,
    ) -> ItemBuyersResult:
        """
        Find buyers of an item under one salesperson, plus opportunities.

        Args:
            item_code: Item code (exact; prefix fallback on the live path)
            salesperson_no: Owner code; "7" and "0007" are the same owner.
                Empty means every owner.
            one_per_tier: Keep only the top buyer of each tier
            selected_tier: When set, also return accounts in this tier that
                have not bought the item
            opportunity_count: How many opportunities to return (max 25)
            use_index: Consult itemCustomerIndex before the live join

        Returns:
            ItemBuyersResult; empty lists mean "nobody", not an error

        Raises:
            ValidationError: If the input is invalid
            LookupServiceError: If the store fails
        """
        code = validate_item_code(item_code)
        rep = validate_salesperson_no(salesperson_no)
        tier = validate_tier(selected_tier.value if isinstance(selected_tier, Tier) else selected_tier)
        count = validate_opportunity_count(opportunity_count)

        source = "index" if use_index and rep else "live"
        start = time.monotonic()
        try:
            result = self._find(code, rep, one_per_tier, tier, count, use_index)
        except StoreError as e:
            increment_counter(lookup_requests_total, source=source, status="error")
            logger.error(f"Item buyer lookup failed for {code!r} (rep {rep!r}): {e}", exc_info=True)
            raise LookupServiceError(f"Lookup failed for item {code}: {e}") from e

        observe_histogram(lookup_duration_seconds, time.monotonic() - start, source=result.meta.source)
        status = "success" if result.buyers or result.opportunities else "empty"
        increment_counter(lookup_requests_total, source=result.meta.source, status=status)
        return result

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _find(
        self,
        code: str,
        rep: str,
        one_per_tier: bool,
        tier: Tier | None,
        count: int,
        use_index: bool,
    ) -> ItemBuyersResult:
        meta = LookupMeta(one_per_tier=one_per_tier, selected_tier=tier, salesperson_no=rep or None)
        lines: list[Document] = []

        entry = self.store.get(f"{INDEX_COLLECTION}/{index_key(code, rep)}") if use_index and rep else None
        if entry is not None:
            meta.source = "index"
            buyer_ids = _unique(clean_str(c) for c in entry.get("customerNos", []))
        else:
            meta.source = "live"
            lines = self._matching_lines(code)
            invoice_ids = _unique(
                sanitize_key(line.get("invoiceNo")) or (line.parent_id or "") for line in lines
            )
            meta.line_count = len(lines)
            meta.invoice_count = len(invoice_ids)
            buyer_ids = self._invoice_customers(invoice_ids[:INVOICE_LIMIT])

        accounts = self._accounts(buyer_ids[:CUSTOMER_LIMIT])
        buyers = [a for a in accounts if a.salesperson_no == rep] if rep else accounts
        if one_per_tier:
            buyers = best_per_tier(buyers)

        opportunities: list[Account] = []
        if tier is not None:
            excluded = set(buyer_ids)
            if entry is not None:
                # The entry only lists invoices written by this salesperson
                excluded.update(self._indexed_buyers(code))
            opportunities = self._opportunities(rep, tier, excluded, count)

        meta.buyer_count = len(buyers)
        meta.opportunity_count = len(opportunities)
        return ItemBuyersResult(
            item_code=code,
            buyers=buyers,
            opportunities=opportunities,
            item_description=self._describe(code, lines),
            meta=meta,
        )

    def _matching_lines(self, code: str) -> list[Document]:
        exact = Query("lines", filters=(Filter("itemCode", "==", code),), limit=LINE_LIMIT, collection_group=True)
        lines = self.store.query(exact).documents
        if not lines and "__" not in code:
            prefix = Query(
                "lines",
                filters=(Filter("itemCode", "startswith", code),),
                limit=LINE_LIMIT,
                collection_group=True,
            )
            lines = self.store.query(prefix).documents
        return lines

    def _indexed_buyers(self, code: str) -> list[str]:
        """Customers in every index entry for the item, whichever salesperson wrote the invoice."""
        query = Query(
            INDEX_COLLECTION,
            filters=(Filter("itemCode", "==", code.strip().upper()),),
            limit=INDEX_SCAN_PAGE,
        )
        return _unique(clean_str(c) for doc in self.store.iter_query(query) for c in doc.get("customerNos", []))

    def _invoice_customers(self, invoice_ids: list[str]) -> list[str]:
        if not invoice_ids:
            return []
        invoices = self.store.get_all([f"invoices/{i}" for i in invoice_ids])
        return _unique(clean_str(inv.get("customerNo")) for inv in invoices if inv is not None)

    def _accounts(self, customer_ids: list[str]) -> list[Account]:
        if not customer_ids:
            return []
        docs = self.store.get_all([f"customers/{sanitize_key(c)}" for c in customer_ids])
        return [Account.from_document(doc.id, doc.data) for doc in docs if doc is not None]

    def _opportunities(self, rep: str, tier: Tier, buyer_ids: set[str], count: int) -> list[Account]:
        if rep:
            queries = [
                Query("customers", filters=(Filter("salespersonNo", "==", rep),), limit=OWNER_SCAN_LIMIT),
                Query("customers", filters=(Filter("salespersonNo2", "==", rep),), limit=OWNER_SCAN_LIMIT),
            ]
        else:
            queries = [Query("customers", limit=OWNER_SCAN_LIMIT)]

        excluded = {sanitize_key(c) for c in buyer_ids}
        candidates: dict[str, Account] = {}
        for query in queries:
            for doc in self.store.query(query).documents:
                if doc.id in candidates or doc.id in excluded:
                    continue
                account = Account.from_document(doc.id, doc.data)
                if account.tier is tier:
                    candidates[doc.id] = account

        ranked = sorted(candidates.values(), key=lambda a: a.trailing_sales, reverse=True)
        return ranked[:count]

    def _describe(self, code: str, lines: list[Document]) -> str | None:
        if not lines:
            sample = Query(
                "lines",
                filters=(Filter("itemCode", "==", code),),
                limit=DESCRIPTION_LINE_SAMPLE,
                collection_group=True,
            )
            lines = self.store.query(sample).documents

        for line in lines[:DESCRIPTION_LINE_SAMPLE]:
            desc = pick_description(line.data)
            if desc:
                return desc

        item = self.store.get(f"items/{sanitize_key(code)}")
        if item is not None and pick_description(item.data):
            return pick_description(item.data)

        by_field = self.store.query(Query("items", filters=(Filter("itemCode", "==", code),), limit=1))
        for doc in by_field:
            if pick_description(doc.data):
                return pick_description(doc.data)

        # Item master ids are often "{code}__{warehouse}"
        prefix = f"{sanitize_key(code)}__"
        after = Query("items", cursor=encode_cursor(None, f"items/{prefix}"), limit=1)
        for doc in self.store.query(after):
            if doc.id.startswith(prefix) and pick_description(doc.data):
                return pick_description(doc.data)

        by_field_prefix = Query("items", filters=(Filter("itemCode", "startswith", f"{code}__"),), limit=1)
        for doc in self.store.query(by_field_prefix):
            if pick_description(doc.data):
                return pick_description(doc.data)

        return None
