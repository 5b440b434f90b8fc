"""
Unit tests for column resolution, tiers and Pydantic document models.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from sales_index.core.columns import INVOICE_HEADER_COLUMNS, INVOICE_LINE_COLUMNS, ColumnMap
from sales_index.core.models import (
    Account,
    CustomerRecord,
    InvoiceHeader,
    InvoiceLine,
    ItemCustomerIndexEntry,
    SourceRef,
    TopItemsResult,
)
from sales_index.core.models.customer import trailing_sales_of
from sales_index.core.tiers import Tier, parse_tier, tier_from_sales


@pytest.mark.unit
class TestColumnMap:
    """Tests for ColumnMap"""

    def test_resolves_aliases_case_insensitively(self):
        columns = ColumnMap.resolve(["invoicenumber", "DATE", "SalesmanNo"], INVOICE_HEADER_COLUMNS)

        assert columns.columns["invoice_no"] == "invoicenumber"
        assert columns.columns["invoice_date"] == "DATE"
        assert columns.columns["salesperson_no"] == "SalesmanNo"

    def test_first_alias_wins(self):
        columns = ColumnMap.resolve(["Invoice", "InvoiceNo"], INVOICE_HEADER_COLUMNS)
        assert columns.columns["invoice_no"] == "InvoiceNo"

    def test_missing_fields_read_empty(self):
        columns = ColumnMap.resolve(["InvoiceNo"], INVOICE_LINE_COLUMNS)

        assert columns.has("invoice_no")
        assert not columns.has("item_code")
        assert "item_code" in columns.missing()
        assert columns.text({"InvoiceNo": " INV1 "}, "invoice_no") == "INV1"
        assert columns.text({"InvoiceNo": "INV1"}, "item_code") == ""
        assert columns.raw({"InvoiceNo": "INV1"}, "item_code") is None

    def test_line_key_aliases(self):
        columns = ColumnMap.resolve(["InvoiceNo", "DetailSeqNo"], INVOICE_LINE_COLUMNS)
        assert columns.columns["line_key"] == "DetailSeqNo"


@pytest.mark.unit
class TestTiers:
    """Tests for tier classification"""

    @pytest.mark.parametrize("sales,tier", [
        (25000, Tier.A),
        (10000, Tier.A),
        (9999.99, Tier.B),
        (5000, Tier.B),
        (4999.99, Tier.C),
        (2000, Tier.C),
        (1999.99, Tier.D),
        (0, Tier.D),
        (-50, Tier.D),
    ])
    def test_boundaries_belong_to_higher_band(self, sales, tier):
        assert tier_from_sales(sales) is tier

    def test_parse_tier(self):
        assert parse_tier(" b ") is Tier.B
        assert parse_tier("") is None
        assert parse_tier(None) is None
        with pytest.raises(ValueError):
            parse_tier("E")


@pytest.mark.unit
class TestInvoiceModels:
    """Tests for invoice header and line documents"""

    def test_header_serializes_camel_case(self):
        header = InvoiceHeader(
            invoice_no="INV1",
            invoice_date=date(2025, 6, 1),
            salesperson_no="0007",
            customer_po_no="PO-9",
            freight_amt=5.0,
            source=SourceRef(file="Inv_HH.csv", row_index=1),
        )

        doc = header.to_document()
        assert doc["invoiceNo"] == "INV1"
        assert doc["invoiceDate"] == "2025-06-01"
        assert doc["salespersonNo"] == "0007"
        assert doc["customerPONo"] == "PO-9"
        assert doc["freightAmt"] == 5.0
        assert doc["source"] == {"file": "Inv_HH.csv", "rowIndex": 1}

    def test_header_requires_invoice_no(self):
        with pytest.raises(ValidationError):
            InvoiceHeader(
                invoice_no="",
                invoice_date=date(2025, 6, 1),
                source=SourceRef(file="f.csv", row_index=1),
            )

    def test_source_row_index_is_one_based(self):
        with pytest.raises(ValidationError):
            SourceRef(file="f.csv", row_index=0)

    def test_line_document(self):
        line = InvoiceLine(
            invoice_no="INV1",
            item_code="K233",
            extension_amt=10.5,
            source=SourceRef(file="Inv_HD.csv", row_index=3),
        )
        doc = line.to_document()
        assert doc["itemCode"] == "K233"
        assert doc["extensionAmt"] == 10.5
        assert doc["lineKey"] == ""


@pytest.mark.unit
class TestIndexEntry:
    """Tests for ItemCustomerIndexEntry"""

    def test_build_sorts_customers(self):
        entry = ItemCustomerIndexEntry.build("K233", "0007", {"C2", "C1"}, years_back=3)

        assert entry.customer_nos == ["C1", "C2"]
        assert entry.customer_count == 2
        assert entry.key == "K233__0007"

    def test_document_has_no_timestamps(self):
        doc = ItemCustomerIndexEntry.build("K1", "0001", {"C1"}, years_back=3).to_document()
        assert set(doc) == {
            "itemCode", "salespersonNo", "customerNos", "customerCount", "yearsBack", "sourceFiles",
        }


@pytest.mark.unit
class TestCustomerModels:
    """Tests for customer documents and the account view"""

    def test_customer_omits_unknown_buyer(self):
        doc = CustomerRecord(customer_no="C1", customer_name="Acme").to_document()

        assert doc["customerNo"] == "C1"
        assert "buyerEmail" not in doc
        assert "buyerName" not in doc

    def test_trailing_sales_field_precedence(self):
        assert trailing_sales_of({"trailingSales": 12.5, "udf_25TotalSales": "99"}) == 12.5
        assert trailing_sales_of({"udf_25TotalSales": "$1,000"}) == 1000.0
        assert trailing_sales_of({}) == 0.0

    def test_account_from_document(self):
        account = Account.from_document("C1", {
            "customerName": "Acme",
            "stateUpper": "TX",
            "salespersonNo": "7",
            "trailingSales": 12000,
            "buyersEmail": " buyer@acme.test ",
        })

        assert account.customer_no == "C1"
        assert account.salesperson_no == "0007"
        assert account.tier is Tier.A
        assert account.state == "TX"
        assert account.buyer_email == "buyer@acme.test"
        assert account.buyer_name is None


@pytest.mark.unit
def test_top_items_result_document():
    """Test the stored top items report uses camelCase keys"""
    doc = TopItemsResult(days_back=60, top_n=5, metric="sales").to_document()
    assert doc["daysBack"] == 60
    assert doc["topN"] == 5
    assert doc["items"] == []
