"""
Invoice header and invoice line documents.
"""

from datetime import date
from typing import Any

from pydantic import Field

from .base import DocumentModel


class SourceRef(DocumentModel):
    """Where a document came from: file name and 1-based data row."""

    file: str
    row_index: int = Field(..., ge=1)


class InvoiceHeader(DocumentModel):
    """
    Normalized invoice header, stored at invoices/{invoiceNo}.

    Attributes:
        invoice_no: Natural key
        invoice_date: Date used for the rolling window
        salesperson_no: Owner code, zero-padded to four digits
        customer_no: Account the invoice was billed to
        raw: Sanitized copy of the source row
    """

    invoice_no: str = Field(..., min_length=1)
    invoice_date: date
    customer_no: str = ""
    ar_division_no: str = ""
    salesperson_no: str = ""
    tax_amt: float = 0.0
    customer_po_no: str = Field("", alias="customerPONo")
    non_taxable_sales_amt: float = 0.0
    freight_amt: float = 0.0
    discount_amt: float = 0.0
    comment: str = ""
    invoice_type: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)
    source: SourceRef

    model_config = {
        "json_schema_extra": {
            "example": {
                "invoiceNo": "0104412",
                "invoiceDate": "2025-03-14",
                "customerNo": "ACME01",
                "salespersonNo": "0007",
                "freightAmt": 12.5,
                "discountAmt": 0.0,
                "source": {"file": "Inv_HH.csv", "rowIndex": 42},
            }
        }
    }


class InvoiceLine(DocumentModel):
    """
    Normalized invoice line, stored at invoices/{invoiceNo}/lines/{lineId}.
    """

    invoice_no: str = Field(..., min_length=1)
    line_key: str = ""
    item_code: str = ""
    item_code_desc: str = ""
    quantity_shipped: float = 0.0
    discount: float = 0.0
    product_line: str = ""
    alias_item_no: str = ""
    comment_text: str = ""
    unit_price: float = 0.0
    extension_amt: float = 0.0
    warehouse_code: str = ""
    sales_acct_key: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)
    source: SourceRef


class InvoiceTotals(DocumentModel):
    """Derived totals merged onto an invoice header after the line pass."""

    merchandise_total: float
    computed_total: float
