"""
Fatal pipeline errors.

Row-level problems never raise; they are skipped and counted by the pass
that found them.
"""


class ConfigurationError(Exception):
    """Missing input file, missing credential or invalid settings.

    Always raised before the first write of a run.
    """


class BatchCommitError(Exception):
    """
    A batch could not be committed.

    Raised for non-transient store failures, and for transient failures
    that outlived the retry budget. Carries enough context for an operator
    to judge how far the run got; rerunning is safe because every write is
    an idempotent upsert.

    Attributes:
        batch_number: 1-based number of the failed batch within its writer
        label: Writer label (usually the target collection)
        committed: Documents successfully committed by the writer before the failure
        attempts: Commit attempts made for the failed batch
    """

    def __init__(self, batch_number: int, label: str, committed: int, attempts: int, cause: BaseException):
        self.batch_number = batch_number
        self.label = label
        self.committed = committed
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Batch {batch_number} for '{label}' failed after {attempts} attempt(s) "
            f"({committed} documents already committed): {cause}"
        )
