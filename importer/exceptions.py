"""Errors raised by the import pipeline."""


class ImporterError(Exception):
    """Base class for import pipeline errors."""


class MalformedFileError(ImporterError):
    """The uploaded file cannot be read as header-delimited tabular text."""


class JobNotFoundError(ImporterError):
    """No job record exists for the given id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobStateError(ImporterError):
    """A job record mutation is not allowed in the record's current state."""


class SubmissionError(ImporterError):
    """A submission was rejected before a job record was created."""
