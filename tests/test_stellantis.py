# tests/test_stellantis.py

from dealer_reports.ingest.cells import Workbook
from dealer_reports.ingest.stellantis import (
    fixed_expense_cell_codes, is_stellantis_data_dump, parse_stellantis_workbook, read_code_values,
)


def _dump_rows():
    rows = [[1000 + i, f"EXPS{37 + i}M"] for i in range(12)]
    rows += [
        ["$50,000", "P04M"],
        [20000, "X11M"],
        [1500, "E633M"],  # line 40, service
        [900, "E603M"],   # line 37, service
        ["", "E613M"],
        [7, "LIAB1M"],
    ]
    return rows


def _workbook(rows, name="Sheet1"):
    workbook = Workbook()
    workbook.add_sheet(name, rows)
    return workbook


def test_fixed_expense_cell_codes():
    codes = fixed_expense_cell_codes("Service Department")
    assert codes["E603"] == 37
    assert codes["E783"] == 55
    assert len(codes) == 19
    assert fixed_expense_cell_codes("Finance Department") == {}


def test_is_stellantis_data_dump():
    assert is_stellantis_data_dump(_workbook(_dump_rows()))
    assert not is_stellantis_data_dump(_workbook(_dump_rows()[:5]))
    assert not is_stellantis_data_dump(_workbook(_dump_rows(), name="Chrysler3"))


def test_read_code_values_skips_blank_values():
    values = read_code_values(_workbook(_dump_rows()).first_sheet())
    assert values["P04M"] == 50000.0
    assert values["EXPS37M"] == 1000.0
    assert "E613M" not in values


def test_parse_stellantis_workbook_prefers_cell_codes():
    parsed = parse_stellantis_workbook(_workbook(_dump_rows()), ["Service Department"])

    metrics = parsed.metrics["Service Department"]
    assert metrics["total_sales"] == 50000.0
    assert metrics["gp_net"] == 20000.0

    subs = parsed.sub_metrics["Service Department"]
    assert [(s.order_index, s.name, s.value) for s in subs] == [
        (1, "SALARIES & WAGES - ADMIN & GENERAL", 900.0),
        (2, "ADVERTISING GENERAL & INSTITUTIONAL", 1500.0),
    ]
    assert all(s.parent_metric_key == "total_fixed_expense" for s in subs)


def test_parse_stellantis_workbook_falls_back_to_raw_expense_codes():
    rows = [row for row in _dump_rows() if not str(row[1]).startswith("E6")]
    parsed = parse_stellantis_workbook(_workbook(rows), ["Service Department", "Finance Department"])

    subs = parsed.sub_metrics["Service Department"]
    assert subs[0].name == "SALARIES & WAGES - ADMIN & GENERAL"
    assert subs[0].value == 1000.0
    # only the lines that have a name are kept (49 and 53 are not expense lines)
    assert [s.value for s in subs][:3] == [1000.0, 1001.0, 1002.0]
    assert any("Finance Department" in note for note in parsed.diagnostics)
