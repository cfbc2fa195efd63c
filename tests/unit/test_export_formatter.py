"""Unit tests for the export formatter"""

import json
import re

import pytest

from harambee_sacco.domain.exceptions import ValidationError
from harambee_sacco.domain.export import build_export, from_csv, to_csv, to_json
from harambee_sacco.domain.models import DownloadFormat


def test_no_rows_renders_empty_string():
    assert to_csv([]) == ""


def test_header_from_first_row_keys():
    rows = [{"Name": "Amina", "Balance": "100.00"}, {"Name": "Otieno", "Balance": "250.50"}]

    assert to_csv(rows) == "Name,Balance\nAmina,100.00\nOtieno,250.50"


def test_quoting_and_empty_values():
    rows = [{"Description": 'Paid "in full", thanks', "Reference": None, "Active": True}]

    lines = to_csv(rows).split("\n")

    assert lines[1] == '"Paid ""in full"", thanks",,true'


def test_single_column_null_is_blank_line():
    assert to_csv([{"Notes": None}]) == "Notes\n"
    assert to_csv([{"Notes": None}, {"Notes": "Paid"}]) == "Notes\n\nPaid"


def test_csv_round_trip_preserves_awkward_values():
    rows = [
        {"Member": "Kamau, Wanjiku", "Notes": 'said "ok"', "Amount": "1500.00"},
        {"Member": "Achieng", "Notes": "line one\nline two", "Amount": "0.00"},
    ]

    assert from_csv(to_csv(rows)) == rows


def test_from_csv_empty_text():
    assert from_csv("") == []


def test_explicit_headers_fill_missing_keys():
    rows = [{"A": "1"}, {"A": "2", "B": "x"}]

    assert to_csv(rows, headers=["A", "B"]) == "A,B\n1,\n2,x"


def test_json_export_is_indented_array():
    text = to_json([{"Name": "Njeri"}])

    assert json.loads(text) == [{"Name": "Njeri"}]
    assert "\n  " in text


def test_build_export_csv_filename_and_type():
    export = build_export("members", DownloadFormat.CSV, [{"Member Number": "HAR-000001"}])

    assert re.fullmatch(r"members_\d{4}-\d{2}-\d{2}\.csv", export.filename)
    assert export.content_type == "text/csv"
    assert export.data == "Member Number\nHAR-000001"


def test_excel_format_is_json_with_xls_name():
    rows = [{"Loan Number": "LN1"}]

    export = build_export("loans", DownloadFormat.EXCEL, rows)

    assert export.filename.endswith(".xls")
    assert export.content_type == "application/vnd.ms-excel"
    assert json.loads(export.data) == rows


def test_build_export_rejects_unknown_format():
    with pytest.raises(ValidationError):
        build_export("loans", "pdf", [])
