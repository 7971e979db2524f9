# ==============================================================================
# dealer_reports/ingest/locator.py
# ------------------------------------------------------------------------------
# Finds the structure inside a report sheet: the header row, the date header
# row, the start of each advisor/section block, the report's date range and
# the store name. All scans work on plain row lists (see Sheet.rows()).
# ==============================================================================

import calendar
import datetime
import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
from openpyxl.utils.datetime import from_excel

from dealer_reports.ingest.layouts import DEFAULT_CSR_LAYOUT, DEFAULT_TECHNICIAN_LAYOUT

US_DATE_RE = re.compile(r'^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$')
ISO_DATE_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
MONTH_WORD_RE = re.compile(r'\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\b', re.IGNORECASE)
DATE_RANGE_RE = re.compile(r'(\d{1,2}/\d{1,2}/\d{4})\s*[-–]\s*(\d{1,2}/\d{1,2}/\d{4})')
MONTH_YEAR_RE = re.compile(
    r'(January|February|March|April|May|June|July|August|September|October|November|December)\s+(\d{4})',
    re.IGNORECASE,
)
MONTH_NAMES = [m.lower() for m in calendar.month_name[1:]]

# Excel serial numbers outside this window are hours/amounts, not dates.
MIN_DATE_SERIAL = 20000  # 1954-10-03
MAX_DATE_SERIAL = 80000  # 2119-01-10


@dataclass
class HeaderInfo:
    row_index: int
    headers: list
    pay_type_index: int


@dataclass
class BlockMarker:
    """The first cell of an advisor block or of a department-total section."""
    kind: str  # 'advisor' or 'section'
    raw: str
    column: int
    employee_id: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class DateHeader:
    row_index: int
    columns: list = field(default_factory=list)  # [(column index, date)]


@dataclass
class DateRange:
    start: datetime.date
    end: datetime.date
    month: str  # "YYYY-MM"


def cell_text(value):
    if value is None:
        return ''
    return str(value).strip()


def find_header_row(rows, layout=DEFAULT_CSR_LAYOUT):
    """
    Returns the first row that contains at least `layout.min_header_matches`
    of the expected column labels (case-insensitive substring match), or None.
    """
    for i, row in enumerate(rows):
        if not row or len(row) < layout.min_header_cells:
            continue
        row_strings = [cell_text(cell).lower() for cell in row]
        match_count = sum(
            1 for expected in layout.expected_headers
            if any(rs and expected in rs for rs in row_strings)
        )
        if match_count < layout.min_header_matches:
            continue

        pay_type_index = next(
            (idx for idx, rs in enumerate(row_strings) if rs and ('pay type' in rs or rs == 'type')),
            0,
        )
        return HeaderInfo(
            row_index=i,
            headers=[cell_text(cell) for cell in row],
            pay_type_index=pay_type_index,
        )
    return None


def parse_advisor_header(text, layout=DEFAULT_CSR_LAYOUT):
    """'Advisor 1099 - Kayla Bender' -> ('1099', 'Kayla Bender'), else None."""
    match = layout.advisor_regex().search(text or '')
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def detect_block_start(row, layout=DEFAULT_CSR_LAYOUT):
    """
    Scans the first few cells of a row left to right and returns a BlockMarker
    for the first advisor header or section marker found, or None.
    """
    if not row:
        return None
    for col in range(min(layout.marker_scan_columns, len(row))):
        text = cell_text(row[col])
        if not text:
            continue
        advisor = parse_advisor_header(text, layout)
        if advisor:
            employee_id, display_name = advisor
            return BlockMarker('advisor', text, col, employee_id, display_name)
        low = text.lower()
        if any(marker in low for marker in layout.section_markers):
            return BlockMarker('section', text, col)
    return None


def to_date(value):
    """
    Interprets a cell as a calendar date: datetime objects, Excel date serials,
    'MM/DD/YYYY' strings, ISO strings and month-name strings. Returns None
    for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, (int, float)):
        if MIN_DATE_SERIAL <= value <= MAX_DATE_SERIAL:
            return from_excel(value).date()
        return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = US_DATE_RE.match(text)
    if match:
        month, day, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
        try:
            return datetime.date(year, month, day)
        except ValueError:
            return None
    match = ISO_DATE_RE.match(text)
    if match:
        try:
            return datetime.date(*(int(g) for g in match.groups()))
        except ValueError:
            return None
    if MONTH_WORD_RE.search(text) and re.search(r'\d', text):
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            parsed = pd.to_datetime(text, errors='coerce')
        if pd.isna(parsed):
            return None
        return parsed.date()
    return None


def find_date_header_row(rows, layout=DEFAULT_TECHNICIAN_LAYOUT):
    """
    Returns the first row (within the scan cap) with at least
    `layout.min_date_columns` date cells after the label column.
    """
    for ri in range(min(layout.date_header_scan_rows, len(rows))):
        row = rows[ri]
        if not row:
            continue
        candidates = []
        for ci in range(1, len(row)):
            day = to_date(row[ci])
            if day is not None:
                candidates.append((ci, day))
        if len(candidates) >= layout.min_date_columns:
            return DateHeader(ri, candidates)
    return None


def extract_date_range(rows, max_rows=10):
    """Looks for '01/01/2026 - 01/31/2026' or 'January 2026' near the top of a report."""
    for row in rows[:max_rows]:
        for cell in row or []:
            if not isinstance(cell, str):
                continue
            match = DATE_RANGE_RE.search(cell)
            if match:
                try:
                    start = datetime.datetime.strptime(match.group(1), '%m/%d/%Y').date()
                    end = datetime.datetime.strptime(match.group(2), '%m/%d/%Y').date()
                except ValueError:
                    start = end = None
                if start and end:
                    return DateRange(start, end, f'{start.year}-{start.month:02d}')

            match = MONTH_YEAR_RE.search(cell)
            if match:
                month_index = MONTH_NAMES.index(match.group(1).lower()) + 1
                year = int(match.group(2))
                last_day = calendar.monthrange(year, month_index)[1]
                return DateRange(
                    datetime.date(year, month_index, 1),
                    datetime.date(year, month_index, last_day),
                    f'{year}-{month_index:02d}',
                )
    return None


def extract_store_name(rows, keywords, max_rows=5):
    """Returns the first cell near the top that reads like a dealership name."""
    pattern = re.compile('|'.join(re.escape(k) for k in keywords), re.IGNORECASE)
    for row in rows[:max_rows]:
        for cell in row or []:
            if isinstance(cell, str) and 5 < len(cell) < 100 and pattern.search(cell):
                return cell.strip()
    return 'Unknown Store'


def choose_sheet(workbook, keywords=None, pattern=None):
    """
    Picks the report sheet: the first sheet whose name contains one of the
    keywords (in keyword order) or matches the pattern, else the first sheet.
    """
    names = workbook.sheet_names
    for keyword in keywords or []:
        for name in names:
            if keyword.lower() in name.lower():
                logging.info(f"[Excel Parse] Using sheet: {name}")
                return workbook.get(name)
    if pattern:
        regex = re.compile(pattern, re.IGNORECASE)
        for name in names:
            if regex.search(name):
                logging.info(f"[Excel Parse] Using sheet: {name}")
                return workbook.get(name)
    return workbook.first_sheet()
