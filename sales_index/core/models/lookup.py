"""
Result of an item buyer lookup.
"""

from typing import Literal

from pydantic import BaseModel, Field

from sales_index.core.tiers import Tier

from .customer import Account


class LookupMeta(BaseModel):
    buyer_count: int = 0
    opportunity_count: int = 0
    one_per_tier: bool = False
    selected_tier: Tier | None = None
    salesperson_no: str | None = None
    line_count: int = 0
    invoice_count: int = 0
    source: Literal["index", "live"] = "live"


class ItemBuyersResult(BaseModel):
    """
    Buyers of an item and, optionally, same-tier accounts that have not
    bought it. Empty lists are a valid answer, not an error.
    """

    item_code: str
    buyers: list[Account] = Field(default_factory=list)
    opportunities: list[Account] = Field(default_factory=list)
    item_description: str | None = None
    meta: LookupMeta = Field(default_factory=LookupMeta)
