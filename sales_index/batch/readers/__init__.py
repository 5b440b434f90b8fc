"""
Streaming readers for delimited exports.
"""

from .csv_reader import CSVRecordReader, ReaderStats

__all__ = ["CSVRecordReader", "ReaderStats"]
