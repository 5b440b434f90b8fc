"""
Rolling window and the state handed from the header pass to later passes.
"""

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping


def compute_cutoff(years_back: int, today: date | None = None) -> date:
    """
    Same calendar day ``years_back`` years ago; Feb 29 falls back to Feb 28.

    Raises:
        ValueError: If years_back is negative
    """
    if years_back < 0:
        raise ValueError(f"years_back must be >= 0, got {years_back}")
    today = today or date.today()
    try:
        return today.replace(year=today.year - years_back)
    except ValueError:
        return today.replace(year=today.year - years_back, day=28)


@dataclass(frozen=True)
class RollingWindow:
    """Inclusive date range [cutoff, today]."""

    cutoff: date
    today: date
    years_back: int

    @classmethod
    def trailing_years(cls, years_back: int, today: date | None = None) -> "RollingWindow":
        today = today or date.today()
        return cls(cutoff=compute_cutoff(years_back, today), today=today, years_back=years_back)

    def contains(self, day: date | None) -> bool:
        return day is not None and self.cutoff <= day <= self.today


@dataclass(frozen=True)
class InvoiceWindowState:
    """
    Everything the header pass learned that later passes need.

    Built once by HeaderImporter.run() and only read afterwards. The line
    pass needs ``in_window``; the totals pass needs ``freight`` and
    ``discount``; the index builder needs ``parties``.

    Attributes:
        window: Window the header pass filtered with
        in_window: Invoice numbers accepted by the header pass
        freight: Invoice number -> header freight amount
        discount: Invoice number -> header discount amount
        parties: Invoice number -> (customer number, salesperson number)
        header_file: Name of the header file
    """

    window: RollingWindow
    in_window: frozenset[str] = frozenset()
    freight: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    discount: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    parties: Mapping[str, tuple[str, str]] = field(default_factory=lambda: MappingProxyType({}))
    header_file: str = ""

    @classmethod
    def build(
        cls,
        window: RollingWindow,
        in_window: set[str],
        freight: dict[str, float],
        discount: dict[str, float],
        parties: dict[str, tuple[str, str]],
        header_file: str = "",
    ) -> "InvoiceWindowState":
        return cls(
            window=window,
            in_window=frozenset(in_window),
            freight=MappingProxyType(dict(freight)),
            discount=MappingProxyType(dict(discount)),
            parties=MappingProxyType(dict(parties)),
            header_file=header_file,
        )

    @property
    def cutoff(self) -> date:
        return self.window.cutoff

    def contains(self, invoice_no: str) -> bool:
        return invoice_no in self.in_window
