"""
Item/customer inverted index entry.
"""

from pydantic import Field, field_validator

from .base import DocumentModel


class ItemCustomerIndexEntry(DocumentModel):
    """
    Customers that bought one item from one salesperson inside the window.

    Stored at itemCustomerIndex/{ITEMCODE__salespersonNo} and always written
    as a full replacement.
    """

    item_code: str = Field(..., min_length=1)
    salesperson_no: str = Field(..., min_length=1)
    customer_nos: list[str]
    customer_count: int = 0
    years_back: int
    source_files: dict[str, str] = Field(default_factory=dict)

    @field_validator("customer_nos")
    @classmethod
    def sort_unique(cls, v: list[str]) -> list[str]:
        return sorted(set(v))

    @classmethod
    def build(
        cls,
        item_code: str,
        salesperson_no: str,
        customers: set[str],
        years_back: int,
        source_files: dict[str, str] | None = None,
    ) -> "ItemCustomerIndexEntry":
        return cls(
            item_code=item_code,
            salesperson_no=salesperson_no,
            customer_nos=list(customers),
            customer_count=len(customers),
            years_back=years_back,
            source_files=source_files or {},
        )

    @property
    def key(self) -> str:
        return f"{self.item_code}__{self.salesperson_no}"
