"""Tests for run CSV serialization."""

from invoiceflow.runs.csv_output import to_csv


def test_comma_value_stays_inside_quotes():
    assert to_csv([{"a": 1, "b": "x,y"}]) == '"a","b"\n"1","x,y"'


def test_empty_rows():
    assert to_csv([]) == ""


def test_embedded_quotes_are_doubled():
    assert to_csv([{"note": 'say "hi"'}]) == '"note"\n"say ""hi"""'


def test_header_from_first_row_only():
    rows = [{"a": 1, "b": 2}, {"a": 3, "c": 4}]
    assert to_csv(rows) == '"a","b"\n"1","2"\n"3",""'


def test_value_text_forms():
    rows = [{"none": None, "flag": False, "amount": 10.0, "tags": ["x", "y"]}]
    assert to_csv(rows) == '"none","flag","amount","tags"\n"","false","10","x,y"'


def test_no_trailing_newline():
    assert not to_csv([{"a": 1}, {"a": 2}]).endswith("\n")
