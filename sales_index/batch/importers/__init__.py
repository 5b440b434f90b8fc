"""
Import passes: headers, lines, totals, the item/customer index and the
supplementary customer, backfill and top-items jobs.
"""

from .backfill import LineHeaderBackfill
from .customer_importer import CustomerImporter
from .header_importer import HeaderImporter
from .index_builder import ItemCustomerIndexBuilder
from .line_importer import LineImporter
from .top_items import TopItemsReport
from .totals_finalizer import TotalsFinalizer
from .window import InvoiceWindowState, RollingWindow, compute_cutoff

__all__ = [
    "CustomerImporter",
    "HeaderImporter",
    "InvoiceWindowState",
    "ItemCustomerIndexBuilder",
    "LineHeaderBackfill",
    "LineImporter",
    "RollingWindow",
    "TopItemsReport",
    "TotalsFinalizer",
    "compute_cutoff",
]
