"""
Customer import.

Loads the customer export into customers/{customerNo}, optionally enriched
with the buyer contact from the contacts export. Trailing sales are parsed
into a number here so the lookup service can tier accounts directly.
"""

import os
from datetime import date

from pydantic import ValidationError

from sales_index.batch.errors import ConfigurationError
from sales_index.batch.readers.csv_reader import CSVRecordReader, check_readable
from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.columns import CONTACT_COLUMNS, CUSTOMER_COLUMNS, ColumnMap
from sales_index.core.models import CustomerImportResult, CustomerRecord
from sales_index.core.normalize import (
    pad_identifier,
    parse_amount,
    parse_fixed_date,
    parse_flag,
    sanitize_key,
)
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import record_skips

logger = get_logger(__name__)

CUSTOMERS_COLLECTION = "customers"

BUYER_CONTACT_CODES = frozenset({"BUYER"})


def days_ago(day: date | None, today: date) -> int | None:
    """Whole days between ``day`` and ``today``; future dates count as 0."""
    if day is None:
        return None
    return max((today - day).days, 0)


def activity_bucket(days: int | None) -> str:
    if days is None:
        return "unknown"
    if days < 60:
        return "lt60"
    if days <= 120:
        return "60_120"
    return "gt120"


def load_buyer_contacts(
    path: str | os.PathLike,
    contact_codes: frozenset[str] = BUYER_CONTACT_CODES,
) -> dict[str, tuple[str, str]]:
    """
    Map customer number -> (buyer email, buyer name).

    Only contacts whose code is in ``contact_codes`` and that have an email
    count; the first one per customer in file order wins.

    Raises:
        ConfigurationError: If the file is missing or has no customer column
    """
    reader = CSVRecordReader(path, file_kind="contacts")
    columns = ColumnMap.resolve(reader.read_fieldnames(), CONTACT_COLUMNS)
    if not columns.has("customer_no"):
        raise ConfigurationError(f"Contacts file {reader.path} has no column for: customer_no")

    buyers: dict[str, tuple[str, str]] = {}
    for _, row in reader:
        customer_no = columns.text(row, "customer_no")
        email = columns.text(row, "email")
        if not customer_no or not email:
            continue
        if columns.text(row, "contact_code").upper() not in contact_codes:
            continue
        buyers.setdefault(customer_no, (email, columns.text(row, "contact_name")))

    logger.info(f"Buyer emails found for {len(buyers):,} customers")
    return buyers


class CustomerImporter:
    """
    Upserts customers with merge semantics.

    Buyer email and name are only written when a buyer contact exists, so
    an import without the contacts file leaves earlier values in place.
    """

    def __init__(
        self,
        writer: BatchedWriter,
        today: date | None = None,
        contact_codes: frozenset[str] = BUYER_CONTACT_CODES,
    ):
        self.writer = writer
        self.today = today or date.today()
        self.contact_codes = contact_codes

    def run(
        self,
        customers_path: str | os.PathLike,
        contacts_path: str | os.PathLike | None = None,
    ) -> CustomerImportResult:
        """
        Import one customer export.

        Raises:
            ConfigurationError: If an input file is missing or lacks key columns
            BatchCommitError: If a batch could not be committed
        """
        check_readable(customers_path, "customers")
        if contacts_path:
            check_readable(contacts_path, "contacts")

        reader = CSVRecordReader(customers_path, file_kind="customers")
        columns = ColumnMap.resolve(reader.read_fieldnames(), CUSTOMER_COLUMNS)
        if not columns.has("customer_no"):
            raise ConfigurationError(f"Customer file {reader.path} has no column for: customer_no")

        buyers = load_buyer_contacts(contacts_path, self.contact_codes) if contacts_path else {}
        result = CustomerImportResult(file=reader.file_name)

        for row_index, row in reader:
            customer_no = columns.text(row, "customer_no")
            if not customer_no:
                result.skipped_missing_key += 1
                continue

            try:
                record = self._build_record(columns, row, customer_no, buyers.get(customer_no))
            except ValidationError as e:
                result.skipped_malformed += 1
                logger.debug(f"customers: row {row_index} rejected: {e}")
                continue

            self.writer.enqueue(CUSTOMERS_COLLECTION, sanitize_key(customer_no), record.to_document())
            result.written += 1
            if record.buyer_email:
                result.buyer_emails += 1

        self.writer.flush()

        result.rows_read = reader.stats.rows
        result.skipped_malformed += reader.stats.malformed
        record_skips("customers", {"missing_key": result.skipped_missing_key})
        logger.info(
            f"Customers done: read {result.rows_read:,}, written {result.written:,}, "
            f"buyer emails {result.buyer_emails:,}"
        )
        return result

    def _build_record(
        self,
        columns: ColumnMap,
        row: dict[str, str],
        customer_no: str,
        buyer: tuple[str, str] | None,
    ) -> CustomerRecord:
        name = columns.text(row, "customer_name")
        state = columns.text(row, "state")
        credit_hold = columns.text(row, "credit_hold")
        last_activity_raw = columns.text(row, "date_last_activity")
        last_activity = parse_fixed_date(last_activity_raw)
        elapsed = days_ago(last_activity, self.today)

        buyer_email, buyer_name = buyer if buyer else (None, None)

        return CustomerRecord(
            customer_no=customer_no,
            customer_name=name,
            customer_name_lower=name.lower(),
            address1=columns.text(row, "address1"),
            city=columns.text(row, "city"),
            state=state,
            state_upper=state.upper(),
            zip=columns.text(row, "zip"),
            phone=columns.text(row, "phone"),
            email=columns.text(row, "email"),
            salesperson_no=pad_identifier(columns.raw(row, "salesperson_no"), 4),
            salesperson_no2=pad_identifier(columns.raw(row, "salesperson_no2"), 4),
            status=columns.text(row, "status"),
            credit_hold=credit_hold,
            credit_hold_bool=parse_flag(credit_hold),
            date_last_activity=last_activity_raw,
            last_activity_date=last_activity,
            last_activity_days_ago=elapsed,
            last_activity_bucket=activity_bucket(elapsed),
            trailing_sales=parse_amount(columns.raw(row, "trailing_sales")),
            current_balance=parse_amount(columns.raw(row, "current_balance")),
            aging_category1=parse_amount(columns.raw(row, "aging_category1")),
            aging_category2=parse_amount(columns.raw(row, "aging_category2")),
            aging_category3=parse_amount(columns.raw(row, "aging_category3")),
            aging_category4=parse_amount(columns.raw(row, "aging_category4")),
            buyer_email=buyer_email,
            buyer_name=buyer_name or None,
        )
