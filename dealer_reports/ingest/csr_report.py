# ==============================================================================
# dealer_reports/ingest/csr_report.py
# ------------------------------------------------------------------------------
# Parses CSR (service advisor) productivity reports exported from a DMS.
#
# Layout: a header row of column labels ("Pay Type", "#SO", "Sold Hrs", ...),
# then one block per advisor starting with "Advisor 1099 - Kayla Bender",
# each followed by one row per pay type. A department-total section
# ("All Repair Orders", "Grand Total") closes the report.
# ==============================================================================

import datetime
import logging

from dealer_reports.ingest.aggregate import is_rate_column, merge_duplicate_advisors
from dealer_reports.ingest.cells import parse_numeric
from dealer_reports.ingest.classifier import classify_pay_type
from dealer_reports.ingest.errors import ReportParseError
from dealer_reports.ingest.layouts import DEFAULT_CSR_LAYOUT
from dealer_reports.ingest.locator import (
    choose_sheet, detect_block_start, extract_date_range, extract_store_name, find_header_row,
)
from dealer_reports.ingest.records import AdvisorData, CSRParseResult, empty_pay_type_metrics


def parse_csr_productivity_report(workbook, layout=DEFAULT_CSR_LAYOUT, today=None):
    """
    Parses a CSR productivity report workbook into per-advisor metrics.

    Args:
        workbook (Workbook): the loaded upload.
        layout (CSRLayout): header keywords, markers and pay-type labels.
        today (date): used for the month when the report carries no dates.

    Returns:
        CSRParseResult

    Raises:
        ReportParseError: if the workbook has no sheets or no header row.
    """
    sheet = choose_sheet(workbook, keywords=layout.preferred_sheets)
    if sheet is None:
        raise ReportParseError("No sheets found in workbook")
    logging.info(f"[CSR Parse] Using sheet: {sheet.name}")

    rows = sheet.rows()
    logging.info(f"[CSR Parse] Total rows: {len(rows)}")
    diagnostics = []

    store_name = extract_store_name(rows, layout.store_keywords, layout.store_scan_rows)
    date_range = extract_date_range(rows, layout.date_scan_rows)
    header = find_header_row(rows, layout)
    if header is None:
        raise ReportParseError("Could not find header row with column labels")

    logging.info(f"[CSR Parse] Header row index: {header.row_index}")
    logging.info(f"[CSR Parse] Headers: {header.headers}")

    advisors = []
    current = None
    department_totals = empty_pay_type_metrics()
    department_totals_by_index = empty_pay_type_metrics()
    in_department_totals = False

    for i in range(header.row_index + 1, len(rows)):
        row = rows[i]
        if not row:
            continue

        marker = detect_block_start(row, layout)
        if marker is not None and marker.kind == 'advisor':
            if current is not None:
                advisors.append(current)
            current = AdvisorData(
                raw_name=marker.raw,
                display_name=marker.display_name,
                employee_id=marker.employee_id,
            )
            in_department_totals = False
            logging.info(f"[CSR Parse] Found advisor: {marker.display_name} ({marker.employee_id})")
            continue

        if marker is not None and marker.kind == 'section':
            if current is not None:
                advisors.append(current)
                current = None
            in_department_totals = True
            logging.info(f"[CSR Parse] Entering department totals section")
            continue

        pay_type_cell = row[header.pay_type_index] if header.pay_type_index < len(row) else None
        pay_type = classify_pay_type(pay_type_cell, layout)
        if pay_type is None:
            if pay_type_cell not in (None, ''):
                diagnostics.append(f"Row {i + 1}: unrecognized pay type '{pay_type_cell}' skipped")
            continue

        if in_department_totals:
            metrics, metrics_by_index = department_totals, department_totals_by_index
        elif current is not None:
            metrics, metrics_by_index = current.metrics, current.metrics_by_index
        else:
            diagnostics.append(f"Row {i + 1}: pay type row before any advisor block skipped")
            continue

        _collect_row_values(row, header, metrics[pay_type], metrics_by_index[pay_type])

    if current is not None:
        advisors.append(current)

    advisor_count = len(advisors)
    rate_columns = {idx for idx, h in enumerate(header.headers) if is_rate_column(h)}
    advisors = merge_duplicate_advisors(advisors, rate_columns)
    if len(advisors) != advisor_count:
        diagnostics.append(f"Merged {advisor_count - len(advisors)} duplicate advisor block(s)")

    logging.info(f"[CSR Parse] Found {len(advisors)} advisors")
    logging.info(f"[CSR Parse] Department totals: {len(department_totals['total'])} metrics")

    if date_range is not None:
        month = date_range.month
    else:
        today = today or datetime.date.today()
        month = f'{today.year}-{today.month:02d}'
        diagnostics.append(f"No report date found; assuming {month}")

    columns_with_index = [
        {'header': h, 'index': idx}
        for idx, h in enumerate(header.headers)
        if h and h.lower() != 'pay type' and idx != header.pay_type_index
    ]

    return CSRParseResult(
        store_name=store_name,
        date_range=(date_range.start, date_range.end) if date_range else None,
        month=month,
        advisors=advisors,
        department_totals=department_totals,
        department_totals_by_index=department_totals_by_index,
        column_headers=[c['header'] for c in columns_with_index],
        column_headers_with_index=columns_with_index,
        sheet_name=sheet.name,
        diagnostics=diagnostics,
    )


def _collect_row_values(row, header, by_header, by_index):
    for col, label in enumerate(header.headers):
        if col == header.pay_type_index or col >= len(row):
            continue
        if not label or label.lower() == 'pay type':
            continue
        value = parse_numeric(row[col])
        if value is None:
            continue
        by_header[label] = value
        by_index[col] = value


def is_csr_productivity_report(workbook, layout=DEFAULT_CSR_LAYOUT):
    """Quick check used to route an upload to this parser."""
    for name in workbook.sheet_names:
        low = name.lower()
        if any(keyword in low for keyword in layout.detection_sheet_keywords):
            return True

    sheet = workbook.first_sheet()
    if sheet is None:
        return False
    for row in sheet.rows()[:layout.detection_scan_rows]:
        row_text = ' '.join(str(c) for c in row if c is not None).lower()
        if ('advisor' in row_text and 'sold hrs' in row_text) or \
                'e.l.r.' in row_text or 'repair order' in row_text or 'pay type' in row_text:
            return True
    return False
