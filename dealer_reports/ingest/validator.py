# ==============================================================================
# dealer_reports/ingest/validator.py
# ------------------------------------------------------------------------------
# Entry point for uploaded reports: reads the file, routes it to the right
# parser and turns structural failures into human-readable error messages.
# ==============================================================================

import logging

from dealer_reports.ingest.cells import load_workbook
from dealer_reports.ingest.csr_report import is_csr_productivity_report, parse_csr_productivity_report
from dealer_reports.ingest.errors import ReportParseError
from dealer_reports.ingest.financial import (
    convert_ytd_sub_metrics, fetch_cell_mappings, parse_financial_workbook,
)
from dealer_reports.ingest.layouts import IngestConfig
from dealer_reports.ingest.stellantis import is_stellantis_data_dump, parse_stellantis_workbook
from dealer_reports.ingest.technician_report import parse_technician_hours_report

REPORT_TYPES = {
    'financial': 'Financial statement',
    'csr': 'CSR productivity report',
    'technician': 'Technician hours report',
}


def parse_report_file(data, filename, report_type):
    """
    Parses an uploaded CSR or technician report.

    Args:
        data (bytes): the uploaded file.
        filename (str): original file name (the extension picks the reader).
        report_type (str): 'csr' or 'technician'.

    Returns:
        tuple: A tuple containing:
            - the parse result record, or None on failure.
            - list: human-readable error messages (empty on success).
    """
    config = IngestConfig()
    try:
        workbook = load_workbook(data, filename)
        if report_type == 'csr':
            if not is_csr_productivity_report(workbook, config.csr_layout):
                logging.warning(f"'{filename}' does not look like a CSR productivity report; parsing anyway")
            return parse_csr_productivity_report(workbook, config.csr_layout), []
        if report_type == 'technician':
            return parse_technician_hours_report(workbook, config.technician_layout), []
    except ReportParseError as e:
        logging.warning(f"Could not parse '{filename}' as {report_type}: {e}")
        return None, [str(e)]
    return None, [f"Unknown report type '{report_type}'."]


def parse_financial_file(data, filename, store, month):
    """
    Parses an uploaded financial statement for a store and month.

    Stellantis data dumps are read by account code; every other file goes
    through the brand's cell mappings for the statement year. For YTD brands
    the sub-metric values are converted to monthly values.

    Returns:
        tuple: (ParsedFinancialData or None, list of error messages)
    """
    config = IngestConfig()
    try:
        workbook = load_workbook(data, filename)
    except ReportParseError as e:
        return None, [str(e)]

    departments_by_name = store.departments_by_name()

    if is_stellantis_data_dump(workbook):
        logging.info(f"'{filename}' is a Stellantis data dump")
        return parse_stellantis_workbook(workbook, list(departments_by_name)), []

    year = int(month.split('-')[0])
    mappings = fetch_cell_mappings(store.brand, year)
    if not mappings:
        return None, [f"No cell mappings are configured for brand '{store.brand}'."]

    parsed = parse_financial_workbook(workbook, mappings)
    if config.is_ytd_brand(store.brand):
        convert_ytd_sub_metrics(parsed, month, departments_by_name)
    return parsed, []
