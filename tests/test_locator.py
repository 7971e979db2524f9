# tests/test_locator.py

import datetime

import pytest

from dealer_reports.ingest.cells import Workbook
from dealer_reports.ingest.layouts import CSRLayout, TechnicianLayout
from dealer_reports.ingest.locator import (
    choose_sheet, detect_block_start, extract_date_range, extract_store_name,
    find_date_header_row, find_header_row, parse_advisor_header, to_date,
)


def test_find_header_row_needs_two_expected_labels():
    rows = [
        ["Service Advisor Productivity", None, None],
        ["Pay Type", "Notes", "Other"],  # one match only
        ["Pay Type", "#SO", "Sold Hrs", "Lab Sold"],
    ]
    header = find_header_row(rows)

    assert header.row_index == 2
    assert header.headers == ["Pay Type", "#SO", "Sold Hrs", "Lab Sold"]
    assert header.pay_type_index == 0


def test_find_header_row_respects_configured_minimum():
    rows = [["Pay Type", "#SO", "Misc"]]
    assert find_header_row(rows, CSRLayout(min_header_matches=3)) is None
    assert find_header_row(rows, CSRLayout(min_header_matches=2)).row_index == 0


def test_find_header_row_none_when_absent():
    assert find_header_row([["a", "b", "c"], [], ["x"]]) is None


def test_parse_advisor_header():
    assert parse_advisor_header("Advisor 1099 - Kayla Bender") == ("1099", "Kayla Bender")
    assert parse_advisor_header("advisor 7-Sam Lee ") == ("7", "Sam Lee")
    assert parse_advisor_header("Kayla Bender") is None


def test_detect_block_start_advisor_and_section():
    advisor = detect_block_start([None, "Advisor 1099 - Kayla Bender"])
    assert advisor.kind == "advisor"
    assert advisor.column == 1
    assert advisor.employee_id == "1099"
    assert advisor.display_name == "Kayla Bender"

    section = detect_block_start(["Grand Total - All Advisors"])
    assert section.kind == "section"

    assert detect_block_start(["Customer", 10, 25.5]) is None
    assert detect_block_start([]) is None


def test_detect_block_start_only_scans_leading_columns():
    row = [None, None, None, None, None, "Advisor 1 - Hidden"]
    assert detect_block_start(row) is None


@pytest.mark.parametrize("raw, expected", [
    (datetime.datetime(2026, 1, 5, 0, 0), datetime.date(2026, 1, 5)),
    (datetime.date(2026, 1, 5), datetime.date(2026, 1, 5)),
    ("01/05/2026", datetime.date(2026, 1, 5)),
    ("1-5-26", datetime.date(2026, 1, 5)),
    ("2026-01-05", datetime.date(2026, 1, 5)),
    ("Jan 5, 2026", datetime.date(2026, 1, 5)),
    (46027, datetime.date(2026, 1, 5)),
    (7.5, None),
    ("Sold Hrs", None),
    ("13/45/2026", None),
    (None, None),
])
def test_to_date(raw, expected):
    assert to_date(raw) == expected


def test_find_date_header_row():
    rows = [
        ["Technician Hours", None],
        ["Name", "01/05/2026", "01/06/2026"],  # only two dates
        ["Name", "01/05/2026", "01/06/2026", "01/07/2026"],
    ]
    header = find_date_header_row(rows)

    assert header.row_index == 2
    assert [c for c, _ in header.columns] == [1, 2, 3]
    assert header.columns[0][1] == datetime.date(2026, 1, 5)


def test_find_date_header_row_honours_scan_cap():
    rows = [[]] * 5 + [["Name", "01/05/2026", "01/06/2026", "01/07/2026"]]
    assert find_date_header_row(rows, TechnicianLayout(date_header_scan_rows=5)) is None
    assert find_date_header_row(rows, TechnicianLayout(date_header_scan_rows=6)).row_index == 5


def test_extract_date_range_from_range_and_month_text():
    explicit = extract_date_range([["Report period: 02/01/2026 - 02/28/2026"]])
    assert explicit.start == datetime.date(2026, 2, 1)
    assert explicit.end == datetime.date(2026, 2, 28)
    assert explicit.month == "2026-02"

    worded = extract_date_range([[None, "Productivity for March 2026"]])
    assert worded.month == "2026-03"
    assert worded.end == datetime.date(2026, 3, 31)

    assert extract_date_range([["no dates here"]]) is None


def test_extract_store_name():
    rows = [["Service Productivity"], ["Murray Chevrolet Ltd."]]
    assert extract_store_name(rows, ["chevrolet", "ford"]) == "Murray Chevrolet Ltd."
    assert extract_store_name([["Nothing useful"]], ["ford"]) == "Unknown Store"


def test_choose_sheet():
    workbook = Workbook()
    workbook.add_sheet("Cover", [["x"]])
    workbook.add_sheet("Tech Hours", [["y"]])
    workbook.add_sheet("All Repair Orders", [["z"]])

    assert choose_sheet(workbook, keywords=["All Repair Orders", "Summary"]).name == "All Repair Orders"
    assert choose_sheet(workbook, pattern=r"tech|hour").name == "Tech Hours"
    assert choose_sheet(workbook, keywords=["Nope"]).name == "Cover"
