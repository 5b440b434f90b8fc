"""
Interactive buyer lookups served from the document store.
"""

from .item_buyers import ItemBuyersService, LookupServiceError

__all__ = ["ItemBuyersService", "LookupServiceError"]
