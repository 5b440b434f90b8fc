"""
Column alias resolution.

Each logical field has an ordered list of acceptable column names. The list
is resolved once per file against the header row, so row processing is a
plain dict lookup instead of a case-insensitive scan.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from .normalize import clean_str

INVOICE_HEADER_COLUMNS: dict[str, tuple[str, ...]] = {
    "invoice_no": ("InvoiceNo", "InvoiceNumber", "Invoice"),
    "invoice_date": ("InvoiceDate", "Date"),
    "customer_no": ("CustomerNo", "CustomerNumber"),
    "ar_division_no": ("ARDivisionNo", "DivisionNo"),
    "salesperson_no": ("SalespersonNo", "SalesmanNo", "Salesperson"),
    "tax_amt": ("SalesTaxAmt",),
    "customer_po_no": ("CustomerPONo",),
    "non_taxable_sales_amt": ("NonTaxableSalesAmt",),
    "freight_amt": ("FreightAmt",),
    "discount_amt": ("DiscountAmt",),
    "comment": ("Comment",),
    "invoice_type": ("InvoiceType",),
}

INVOICE_LINE_COLUMNS: dict[str, tuple[str, ...]] = {
    "invoice_no": ("InvoiceNo", "InvoiceNumber", "Invoice"),
    "line_key": ("LineKey", "InvoiceLineKey", "DetailSeqNo", "LineSeqNo"),
    "item_code": ("ItemCode", "Item"),
    "item_code_desc": ("ItemCodeDesc",),
    "quantity_shipped": ("QuantityShipped",),
    "discount": ("Discount",),
    "product_line": ("ProductLine",),
    "alias_item_no": ("AliasItemNo",),
    "comment_text": ("CommentText",),
    "unit_price": ("UnitPrice",),
    "extension_amt": ("ExtensionAmt",),
    "warehouse_code": ("WarehouseCode",),
    "sales_acct_key": ("SalesAcctKey",),
}

CUSTOMER_COLUMNS: dict[str, tuple[str, ...]] = {
    "customer_no": ("CustomerNo", "CustomerNumber"),
    "customer_name": ("CustomerName",),
    "address1": ("AddressLine1",),
    "city": ("City",),
    "state": ("State",),
    "zip": ("ZipCode",),
    "phone": ("TelephoneNo",),
    "email": ("EmailAddress",),
    "salesperson_no": ("SalespersonNo",),
    "salesperson_no2": ("SalespersonNo2",),
    "status": ("CustomerStatus",),
    "credit_hold": ("CreditHold",),
    "date_last_activity": ("DateLastActivity",),
    "trailing_sales": ("UDF_25TOTALSALES", "TrailingSales"),
    "current_balance": ("CurrentBalance",),
    "aging_category1": ("AgingCategory1",),
    "aging_category2": ("AgingCategory2",),
    "aging_category3": ("AgingCategory3",),
    "aging_category4": ("AgingCategory4",),
}

CONTACT_COLUMNS: dict[str, tuple[str, ...]] = {
    "customer_no": ("CustomerNo",),
    "contact_code": ("ContactCode",),
    "contact_name": ("ContactName",),
    "email": ("EmailAddress",),
}


@dataclass(frozen=True)
class ColumnMap:
    """
    Logical field -> actual column name, for one file.

    Fields with no matching column map to None and always read as "".
    """

    columns: Mapping[str, str | None]

    @classmethod
    def resolve(
        cls,
        fieldnames: list[str],
        aliases: Mapping[str, tuple[str, ...]],
    ) -> "ColumnMap":
        """
        Resolve alias lists against a header row, case-insensitively.

        Args:
            fieldnames: Header row of the file (already trimmed)
            aliases: Logical field -> acceptable column names, in priority order

        Returns:
            ColumnMap for this file
        """
        by_lower: dict[str, str] = {}
        for name in fieldnames:
            by_lower.setdefault(name.strip().lower(), name)

        resolved: dict[str, str | None] = {}
        for field, names in aliases.items():
            resolved[field] = next(
                (by_lower[n.lower()] for n in names if n.lower() in by_lower),
                None,
            )
        return cls(resolved)

    def has(self, field: str) -> bool:
        return self.columns.get(field) is not None

    def raw(self, row: Mapping[str, Any], field: str) -> Any:
        column = self.columns.get(field)
        if column is None:
            return None
        return row.get(column)

    def text(self, row: Mapping[str, Any], field: str) -> str:
        return clean_str(self.raw(row, field))

    def missing(self) -> list[str]:
        return [field for field, column in self.columns.items() if column is None]
