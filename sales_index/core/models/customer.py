"""
Customer documents and the read-side account view used by lookups.
"""

from datetime import date
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field

from sales_index.core.normalize import clean_str, pad_identifier, parse_amount
from sales_index.core.tiers import Tier, tier_from_sales

from .base import DocumentModel

# Customer fields that may hold the trailing-sales figure, newest name first
TRAILING_SALES_FIELDS = ("trailingSales", "udf_25TotalSales", "udf250Totalsales")

BUYER_EMAIL_FIELDS = ("buyerEmail", "buyersEmail", "buyer_email", "buyerEmailAddress", "buyeremail")
BUYER_NAME_FIELDS = ("buyerName", "buyersName", "buyer_name")

ActivityBucket = Literal["lt60", "60_120", "gt120", "unknown"]


class CustomerRecord(DocumentModel):
    """
    Customer document written by the customer import, stored at
    customers/{customerNo}.
    """

    customer_no: str = Field(..., min_length=1)
    customer_name: str = ""
    customer_name_lower: str = ""
    address1: str = ""
    city: str = ""
    state: str = ""
    state_upper: str = ""
    zip: str = ""
    phone: str = ""
    email: str = ""
    salesperson_no: str = ""
    salesperson_no2: str = ""
    status: str = ""
    credit_hold: str = ""
    credit_hold_bool: bool = False
    date_last_activity: str = ""
    last_activity_date: date | None = None
    last_activity_days_ago: int | None = None
    last_activity_bucket: ActivityBucket = "unknown"
    trailing_sales: float = 0.0
    current_balance: float = 0.0
    aging_category1: float = 0.0
    aging_category2: float = 0.0
    aging_category3: float = 0.0
    aging_category4: float = 0.0
    buyer_email: str | None = None
    buyer_name: str | None = None

    def to_document(self) -> dict[str, Any]:
        # buyer contact fields are only written when known, so a later
        # import without the contacts file does not blank them
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def _first_text(data: Mapping[str, Any], fields: tuple[str, ...]) -> str | None:
    for field in fields:
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def trailing_sales_of(data: Mapping[str, Any]) -> float:
    """Read the trailing-sales figure from a customer document."""
    for field in TRAILING_SALES_FIELDS:
        if field in data and data[field] not in (None, ""):
            return parse_amount(data[field])
    return 0.0


class Account(BaseModel):
    """
    Customer as returned by the buyer lookup, with its tier computed at
    read time.
    """

    customer_no: str
    name: str = ""
    city: str = ""
    state: str = ""
    salesperson_no: str = ""
    trailing_sales: float = 0.0
    tier: Tier = Tier.D
    buyer_email: str | None = None
    buyer_name: str | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Account":
        sales = trailing_sales_of(data)
        return cls(
            customer_no=doc_id,
            name=clean_str(data.get("customerName") or data.get("name") or data.get("customer")),
            city=clean_str(data.get("city")),
            state=clean_str(data.get("stateUpper") or data.get("state")),
            salesperson_no=pad_identifier(data.get("salespersonNo") or data.get("salesperson")),
            trailing_sales=sales,
            tier=tier_from_sales(sales),
            buyer_email=_first_text(data, BUYER_EMAIL_FIELDS),
            buyer_name=_first_text(data, BUYER_NAME_FIELDS),
        )
