"""
Writers that commit normalized documents to the document store.
"""

from .batched_writer import BatchedWriter

__all__ = ["BatchedWriter"]
