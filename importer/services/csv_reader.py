"""CSV row source for uploaded import files."""
import csv
from dataclasses import dataclass
from io import StringIO
from typing import Iterator, Optional

from importer.exceptions import MalformedFileError

FIRST_DATA_ROW = 2  # Row 1 is the header


@dataclass(frozen=True)
class RawRow:
    """One data row: its file row number and cell values keyed by header."""

    row: int
    data: dict[str, Optional[str]]


class CsvRowSource:
    """
    Iterates the data rows of a CSV upload in file order.

    Header names are stripped and lower-cased. Decoding and header problems
    raise MalformedFileError before the first row is produced; a csv.Error
    part way through the file is raised as MalformedFileError as well. A
    column absent from the header reads as an empty cell in every row.
    """

    def __init__(self, content: bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedFileError(f"File is not valid UTF-8 text: {e}") from e

        self._reader = csv.DictReader(StringIO(text, newline=""))
        try:
            fieldnames = self._reader.fieldnames
        except csv.Error as e:
            raise MalformedFileError(f"Unreadable CSV header: {e}") from e
        if not fieldnames or not any(name and name.strip() for name in fieldnames):
            raise MalformedFileError("File has no header row")

        self.columns = [name.strip().lower() for name in fieldnames]
        self._reader.fieldnames = self.columns

    def __iter__(self) -> Iterator[RawRow]:
        try:
            for row_number, row in enumerate(self._reader, start=FIRST_DATA_ROW):
                # Cells beyond the header land under the None key
                row.pop(None, None)
                yield RawRow(row=row_number, data=row)
        except csv.Error as e:
            raise MalformedFileError(f"Unreadable CSV content: {e}") from e


def read_rows(content: bytes) -> list[RawRow]:
    """Load every data row of a CSV upload into memory."""
    return list(CsvRowSource(content))
