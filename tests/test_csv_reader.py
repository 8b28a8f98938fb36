"""Tests for reading CSV uploads into raw rows."""
import pytest

from importer.exceptions import MalformedFileError
from importer.services.csv_reader import CsvRowSource, read_rows


def test_rows_are_numbered_from_two():
    """Test data rows are numbered from 2."""
    rows = read_rows(b"a,b\n1,2\n3,4\n")
    assert [(r.row, r.data) for r in rows] == [(2, {"a": "1", "b": "2"}), (3, {"a": "3", "b": "4"})]


def test_headers_are_normalized_and_bom_is_dropped():
    """Test header normalization and BOM removal."""
    source = CsvRowSource("\ufeff Dealer_Code ,STATE\nDLR001,MH\n".encode("utf-8"))
    assert source.columns == ["dealer_code", "state"]
    assert list(source)[0].data == {"dealer_code": "DLR001", "state": "MH"}


def test_extra_cells_are_ignored_and_missing_cells_are_none():
    """Test ragged rows are trimmed or padded."""
    rows = read_rows(b"a,b\n1,2,3\n4\n")
    assert rows[0].data == {"a": "1", "b": "2"}
    assert rows[1].data == {"a": "4", "b": None}


@pytest.mark.parametrize("content", [b"", b"\n", b" , \n"])
def test_missing_header_is_malformed(content):
    """Test a file without a header is malformed."""
    with pytest.raises(MalformedFileError):
        read_rows(content)


def test_invalid_utf8_is_malformed():
    """Test non-UTF-8 content is malformed."""
    with pytest.raises(MalformedFileError):
        read_rows(b"a,b\n\xff,1\n")


def test_absent_column_is_not_malformed():
    """Test a column absent from the header reads as empty."""
    rows = read_rows(b"dealer_code,gst_number\nX,Y\n")
    assert rows[0].data == {"dealer_code": "X", "gst_number": "Y"}
    assert rows[0].data.get("mobile") is None
