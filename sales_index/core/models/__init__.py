"""
Data models for the sales-index pipeline.

Document models use Pydantic for validation and serialize to the camelCase
field names stored in the document store.
"""

from .customer import Account, CustomerRecord
from .index_entry import ItemCustomerIndexEntry
from .invoice import InvoiceHeader, InvoiceLine, InvoiceTotals, SourceRef
from .lookup import ItemBuyersResult, LookupMeta
from .results import (
    BackfillResult,
    CustomerImportResult,
    HeaderPassResult,
    IndexBuildResult,
    InvoiceImportResult,
    LinePassResult,
    TopItem,
    TopItemsResult,
    TotalsResult,
)

__all__ = [
    "Account",
    "BackfillResult",
    "CustomerImportResult",
    "CustomerRecord",
    "HeaderPassResult",
    "IndexBuildResult",
    "InvoiceHeader",
    "InvoiceImportResult",
    "InvoiceLine",
    "InvoiceTotals",
    "ItemBuyersResult",
    "ItemCustomerIndexEntry",
    "LinePassResult",
    "LookupMeta",
    "SourceRef",
    "TopItem",
    "TopItemsResult",
    "TotalsResult",
]
