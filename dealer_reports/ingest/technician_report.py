# ==============================================================================
# dealer_reports/ingest/technician_report.py
# ------------------------------------------------------------------------------
# Parses technician hours reports.
#
# Layout (vertical):
#   - a header row with one column per calendar date
#   - each technician block starts with a row whose first cell is the name
#   - rows inside a block carry a label in column A ("Sold Hrs",
#     "Clocked In Hrs") and hours under each date column
# ==============================================================================

import logging

from dealer_reports.ingest.aggregate import build_technician, dominant_month, merge_duplicate_technicians
from dealer_reports.ingest.cells import parse_numeric
from dealer_reports.ingest.classifier import (
    SOLD, classify_hours_row, is_clocked_in_label, is_sold_hours_label, looks_like_person_name,
    normalize_label,
)
from dealer_reports.ingest.errors import ReportParseError
from dealer_reports.ingest.layouts import DEFAULT_TECHNICIAN_LAYOUT
from dealer_reports.ingest.locator import choose_sheet, extract_store_name, find_date_header_row
from dealer_reports.ingest.records import TechnicianHoursParseResult


def parse_technician_hours_report(workbook, layout=DEFAULT_TECHNICIAN_LAYOUT):
    """
    Parses a technician hours report into per-technician daily values with
    weekly and monthly rollups.

    Raises:
        ReportParseError: if the workbook has no sheets or no date header row.
    """
    sheet = choose_sheet(workbook, pattern=layout.sheet_pattern)
    if sheet is None:
        raise ReportParseError("No sheets found in workbook")

    rows = sheet.rows()
    logging.info(f"[TechParse] Sheet: {sheet.name} rows: {len(rows)}")
    diagnostics = []

    date_header = find_date_header_row(rows, layout)
    if date_header is None:
        raise ReportParseError(
            "Could not find date header row in technician report. "
            "Make sure the file has daily date columns."
        )
    logging.info(f"[TechParse] Date header row: {date_header.row_index} columns: {len(date_header.columns)}")

    month = dominant_month(day for _, day in date_header.columns)
    body = rows[date_header.row_index + 1:]
    known_labels = collect_known_labels(body, layout)

    technicians = []
    current = None
    for offset, row in enumerate(body):
        if not row or all(c is None or c == '' for c in row):
            continue
        row_number = date_header.row_index + offset + 2
        label = row[0] if row else None

        if looks_like_person_name(label, layout.excluded_name_words, known_labels):
            if current is not None:
                technicians.append(build_technician(*current))
            name = str(label).strip()
            current = (name, {}, {})
            logging.info(f"[TechParse] Found technician: {name}")
            continue

        if current is None:
            continue

        kind = classify_hours_row(label, layout)
        if kind is None:
            if label not in (None, ''):
                diagnostics.append(f"Row {row_number}: unrecognized row label '{label}' skipped")
            continue

        target = current[1] if kind == SOLD else current[2]
        for col, day in date_header.columns:
            value = parse_numeric(row[col]) if col < len(row) else None
            target[day] = target.get(day, 0.0) + (value or 0.0)

    if current is not None:
        technicians.append(build_technician(*current))

    deduped = merge_duplicate_technicians(technicians)
    logging.info(f"[TechParse] Found {len(technicians)} technicians, {len(deduped)} after dedup")
    if len(deduped) != len(technicians):
        diagnostics.append(f"Merged {len(technicians) - len(deduped)} duplicate technician block(s)")

    return TechnicianHoursParseResult(
        store_name=extract_store_name(rows, layout.store_keywords, layout.store_scan_rows),
        month=month,
        technicians=deduped,
        detected_names=[t.raw_name for t in deduped],
        sheet_name=sheet.name,
        diagnostics=diagnostics,
    )


def collect_known_labels(rows, layout=DEFAULT_TECHNICIAN_LAYOUT):
    """
    Gathers the hour-row labels used in this report so the name heuristic
    never mistakes one of them for a technician.
    """
    known = set()
    for row in rows:
        if not row or row[0] in (None, ''):
            continue
        label = row[0]
        if is_sold_hours_label(label, layout) or is_clocked_in_label(label, layout):
            known.add(normalize_label(label))
            known.add(str(label).lower().strip())
    return known
