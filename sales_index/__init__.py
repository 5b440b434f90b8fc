"""
sales-index: invoice ingestion, item/customer index and buyer lookup.
"""

__version__ = "0.1.0"
