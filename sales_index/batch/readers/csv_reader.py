"""
Streaming CSV reader for accounting-system exports.

Rows are produced lazily, one at a time, so multi-million-row files are read
in constant memory. A malformed row is counted and dropped; it never aborts
the stream. A missing or unreadable file is a ConfigurationError raised
before any row is produced.
"""

import csv
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from sales_index.batch.errors import ConfigurationError
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import increment_counter, record_skips, rows_read_total

logger = get_logger(__name__)

BOM = "\ufeff"

# Exports carry long free-text comment columns
csv.field_size_limit(min(sys.maxsize, 2**31 - 1))


@dataclass
class ReaderStats:
    """Counters for one pass over a file."""

    rows: int = 0
    malformed: int = 0
    parse_errors: int = 0
    blank: int = 0


class CSVRecordReader:
    """
    Lazily reads a delimited file into field-name -> value mappings.

    Iterating yields ``(row_index, record)`` pairs. ``row_index`` is the
    1-based position of the data row among non-blank rows (malformed rows
    included), so it is stable across reruns over the same file.

    Usage:
        reader = CSVRecordReader("/exports/Inv_HH.csv", file_kind="headers")
        for row_index, record in reader:
            ...
        reader.stats.malformed
    """

    def __init__(
        self,
        file_path: str | os.PathLike,
        file_kind: str = "csv",
        delimiter: str = ",",
        encoding: str = "utf-8-sig",
        progress_every: int = 200_000,
    ):
        """
        Initialize reader and check the file is readable.

        Args:
            file_path: Path to the delimited file
            file_kind: Label used in logs and metrics (headers, lines, customers...)
            delimiter: Field delimiter
            encoding: Text encoding; the default strips a UTF-8 byte-order mark
            progress_every: Log progress every N rows (0 disables)

        Raises:
            ConfigurationError: If the file does not exist or cannot be read
        """
        self.path = Path(file_path)
        self.file_kind = file_kind
        self.delimiter = delimiter
        self.encoding = encoding
        self.progress_every = progress_every
        self.fieldnames: list[str] = []
        self.stats = ReaderStats()

        check_readable(self.path, file_kind)

    @property
    def file_name(self) -> str:
        return self.path.name

    def read_fieldnames(self) -> list[str]:
        """Read just the header row (trimmed, BOM removed)."""
        with self._open() as handle:
            reader = csv.reader(handle, delimiter=self.delimiter, quotechar='"', doublequote=True)
            try:
                header = next(reader)
            except StopIteration:
                return []
            except csv.Error as e:
                raise ConfigurationError(f"Unreadable header row in {self.path}: {e}") from e
        return _clean_header(header)

    def __iter__(self) -> Iterator[tuple[int, dict[str, str]]]:
        self.stats = ReaderStats()
        logger.info(f"Streaming {self.file_kind}: {self.path}")

        with self._open() as handle:
            reader = csv.reader(handle, delimiter=self.delimiter, quotechar='"', doublequote=True)
            try:
                header = next(reader)
            except StopIteration:
                logger.warning(f"{self.file_kind}: file is empty: {self.path}")
                return
            except csv.Error as e:
                raise ConfigurationError(f"Unreadable header row in {self.path}: {e}") from e

            self.fieldnames = _clean_header(header)
            width = len(self.fieldnames)

            while True:
                try:
                    values = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    self.stats.rows += 1
                    self.stats.parse_errors += 1
                    self.stats.malformed += 1
                    logger.debug(f"{self.file_kind}: parse error near line {reader.line_num}: {e}")
                    continue

                if not any(v.strip() for v in values):
                    self.stats.blank += 1
                    continue

                self.stats.rows += 1
                row_index = self.stats.rows

                if self.progress_every and row_index % self.progress_every == 0:
                    logger.info(
                        f"{self.file_kind}: parsed {row_index:,} rows "
                        f"(malformed {self.stats.malformed:,})"
                    )

                if len(values) != width:
                    self.stats.malformed += 1
                    logger.debug(
                        f"{self.file_kind}: row {row_index} has {len(values)} fields, expected {width}"
                    )
                    continue

                yield row_index, dict(zip(self.fieldnames, values))

        increment_counter(rows_read_total, self.stats.rows, file_kind=self.file_kind)
        record_skips(self.file_kind, {"malformed": self.stats.malformed})
        logger.info(
            f"{self.file_kind}: parsed {self.stats.rows:,} rows "
            f"(malformed {self.stats.malformed:,}, parse errors {self.stats.parse_errors:,})"
        )

    def _open(self):
        try:
            return open(self.path, "r", encoding=self.encoding, newline="", errors="replace")
        except OSError as e:
            raise ConfigurationError(f"Cannot open {self.file_kind} file {self.path}: {e}") from e


def check_readable(path: str | os.PathLike, file_kind: str = "csv") -> Path:
    """
    Fail fast when an input file is missing or unreadable.

    Raises:
        ConfigurationError: If the file does not exist or cannot be read
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"{file_kind} file not found at: {path}")
    if not os.access(path, os.R_OK):
        raise ConfigurationError(f"{file_kind} file is not readable: {path}")
    return path


def _clean_header(header: list[str]) -> list[str]:
    return [str(h or "").replace(BOM, "").strip() for h in header]
