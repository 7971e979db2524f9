# ==============================================================================
# dealer_reports/ingest/cells.py
# ------------------------------------------------------------------------------
# In-memory workbook model and cell value extraction.
#
# A Workbook is an ordered collection of named sheets; each Sheet is a sparse
# grid of Cells addressed by A1 references. Every parser works on this model,
# so it does not matter whether the upload was .xlsx, legacy .xls or .csv.
# ==============================================================================

import csv
import io
import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd
from openpyxl import load_workbook as openpyxl_load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.cell import coordinate_from_string, column_index_from_string

from dealer_reports.ingest.errors import ReportParseError

CELL_REFERENCE_RE = re.compile(r'^([A-Z]+)(\d+)$', re.IGNORECASE)
# 'Sheet Name'!D70, Nissan5!D70, =Nissan5!$D$70
FORMULA_REFERENCE_RE = re.compile(r"^=?'?([^'!]+)'?!\$?([A-Z]+)\$?(\d+)$", re.IGNORECASE)
NUMERIC_NOISE_RE = re.compile(r'[$,%\s]')


@dataclass
class Cell:
    value: Any = None
    formula: Optional[str] = None


class Sheet:
    """A sparse grid of cells keyed by upper-case A1 reference."""

    def __init__(self, name, cells=None):
        self.name = name
        self.cells = cells if cells is not None else {}
        self._rows = None

    def get(self, reference):
        if not reference:
            return None
        return self.cells.get(reference.strip().upper())

    def __getitem__(self, reference):
        return self.get(reference)

    def set(self, reference, value, formula=None):
        self.cells[reference.strip().upper()] = Cell(value=value, formula=formula)
        self._rows = None

    @classmethod
    def from_rows(cls, name, rows):
        """Builds a sheet from a list of row lists (row 0 becomes row 1 in A1 terms)."""
        sheet = cls(name)
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if value is None:
                    continue
                sheet.cells[f'{get_column_letter(c + 1)}{r + 1}'] = Cell(value=value)
        return sheet

    def rows(self):
        """
        Returns the sheet as a list of row lists (0-based), with empty cells
        as None and trailing empty cells dropped from each row.
        """
        if self._rows is not None:
            return self._rows
        grid = {}
        max_row = 0
        for reference, cell in self.cells.items():
            column, row = coordinate_from_string(reference)
            col_idx = column_index_from_string(column) - 1
            grid.setdefault(row - 1, {})[col_idx] = cell.value
            max_row = max(max_row, row)

        rows = []
        for r in range(max_row):
            values = grid.get(r, {})
            width = max(values.keys()) + 1 if values else 0
            row = [values.get(c) for c in range(width)]
            while row and _is_blank(row[-1]):
                row.pop()
            rows.append(row)
        self._rows = rows
        return rows

    def __repr__(self):
        return f'<Sheet {self.name}: {len(self.cells)} cells>'


class Workbook:
    """Ordered collection of named sheets."""

    def __init__(self, sheets=None):
        self.sheets = {}
        for sheet in sheets or []:
            self.sheets[sheet.name] = sheet

    @property
    def sheet_names(self):
        return list(self.sheets.keys())

    def add_sheet(self, name, rows=None):
        sheet = Sheet.from_rows(name, rows) if rows is not None else Sheet(name)
        self.sheets[name] = sheet
        return sheet

    def get(self, name):
        return self.sheets.get(name)

    def first_sheet(self):
        if not self.sheets:
            return None
        return next(iter(self.sheets.values()))

    def find_sheet(self, name, diagnostics=None):
        """
        Resolves a configured sheet name: exact match, then case-insensitive
        match, then the first sheet of the workbook (CSV exports only have one).
        Returns None only when the workbook has no sheets.
        """
        if name in self.sheets:
            return self.sheets[name]

        wanted = (name or '').strip().lower()
        for sheet_name, sheet in self.sheets.items():
            if sheet_name.strip().lower() == wanted:
                logging.info(f"[Excel Parse] Sheet '{name}' matched (case-insensitive) to '{sheet_name}'")
                return sheet

        first = self.first_sheet()
        if first is None:
            logging.warning(f"[Excel Parse] No sheets found in workbook.")
            return None
        message = f"Sheet '{name}' not found; using '{first.name}' instead."
        logging.warning(f"[Excel Parse] {message} Available sheets: {self.sheet_names}")
        if diagnostics is not None and message not in diagnostics:
            diagnostics.append(message)
        return first

    def __repr__(self):
        return f'<Workbook {self.sheet_names}>'


def _is_blank(value):
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ''


# --- Loading ---

def load_workbook(data, filename='upload.xlsx'):
    """
    Reads uploaded file bytes into a Workbook.

    .xlsx/.xlsm files are read with openpyxl twice: once for formulas and once
    for cached values, so simple cross-sheet references can be followed.
    Legacy .xls and .csv files are read with pandas and carry values only.

    Raises:
        ReportParseError: if the file cannot be read or contains no sheets.
    """
    extension = os.path.splitext(filename or '')[1].lower()
    try:
        if extension == '.csv':
            workbook = _load_csv(data, filename)
        elif extension == '.xls':
            workbook = _load_with_pandas(data)
        else:
            workbook = _load_with_openpyxl(data)
    except ReportParseError:
        raise
    except Exception as e:
        logging.error(f"[Excel Parse] Failed to read '{filename}': {e}", exc_info=True)
        raise ReportParseError(f"The file '{filename}' is not a readable spreadsheet: {e}") from e

    if not workbook.sheet_names:
        raise ReportParseError("No sheets found in workbook")
    logging.info(f"[Excel Parse] Available sheets: {workbook.sheet_names}")
    return workbook


def load_workbook_path(path):
    with open(path, 'rb') as fh:
        return load_workbook(fh.read(), os.path.basename(path))


def _load_with_openpyxl(data):
    formulas_wb = openpyxl_load_workbook(io.BytesIO(data), data_only=False)
    values_wb = openpyxl_load_workbook(io.BytesIO(data), data_only=True)

    workbook = Workbook()
    for ws in formulas_wb.worksheets:
        computed_ws = values_wb[ws.title]
        sheet = workbook.add_sheet(ws.title)
        for row in ws.iter_rows():
            for cell in row:
                raw = cell.value
                if raw is None:
                    continue
                formula = None
                value = raw
                if cell.data_type == 'f' or (isinstance(raw, str) and raw.startswith('=')):
                    formula = str(getattr(raw, 'text', raw)).lstrip('=')
                    value = computed_ws[cell.coordinate].value
                sheet.cells[cell.coordinate] = Cell(value=value, formula=formula)
    return workbook


def _load_with_pandas(data):
    frames = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None)
    workbook = Workbook()
    for name, df in frames.items():
        workbook.add_sheet(str(name), _frame_rows(df))
    return workbook


def _load_csv(data, filename):
    # Title rows are narrower than the table; size the frame to the widest row.
    text = data.decode('utf-8-sig', errors='replace')
    width = max((len(fields) for fields in csv.reader(io.StringIO(text))), default=0)
    if width == 0:
        raise ReportParseError(f"The file '{filename}' is empty")
    df = pd.read_csv(io.StringIO(text), header=None, names=range(width), dtype=str,
                     keep_default_na=False, skip_blank_lines=False)
    workbook = Workbook()
    workbook.add_sheet(os.path.splitext(os.path.basename(filename))[0] or 'Sheet1', _frame_rows(df))
    return workbook


def _frame_rows(df):
    rows = []
    for values in df.itertuples(index=False, name=None):
        rows.append([None if _is_blank(v) else v for v in values])
    return rows


# --- Reference Parsing ---

def parse_cell_reference(reference):
    """Parses "D6" into ("D", 6). Returns None for anything that is not an A1 reference."""
    if not reference:
        return None
    match = CELL_REFERENCE_RE.match(reference.strip())
    if not match:
        return None
    return match.group(1).upper(), int(match.group(2))


def parse_formula_reference(formula):
    """
    Parses a formula that is nothing but a reference to another sheet's cell,
    e.g. "Nissan5!D70" or "'Sheet Name'!A1". Returns (sheet, cell) or None.
    """
    if not formula or not isinstance(formula, str):
        return None
    match = FORMULA_REFERENCE_RE.match(formula.strip())
    if not match:
        return None
    return match.group(1), f'{match.group(2).upper()}{match.group(3)}'


# --- Value Extraction ---

def parse_numeric(value):
    """
    Parses a cell value into a float. Currency symbols, thousands separators,
    percent signs and whitespace are stripped; "(1,234.50)" is -1234.5.
    Returns None for empty or unparsable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return float(value)
    if not isinstance(value, str):
        return None

    cleaned = NUMERIC_NOISE_RE.sub('', value)
    if cleaned in ('', '-'):
        return None
    is_negative = cleaned.startswith('(') and cleaned.endswith(')')
    if is_negative:
        cleaned = cleaned[1:-1]
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if math.isnan(number):
        return None
    return -number if is_negative else number


def extract_numeric_value(cell, workbook):
    """
    Returns the numeric value of a cell. A formula that is a plain reference to
    another sheet's cell is followed one hop and the source cell is parsed
    instead, since formula cells saved by some tools carry no cached value.
    """
    if cell is None:
        return None

    if cell.formula:
        ref = parse_formula_reference(cell.formula)
        if ref:
            ref_sheet_name, ref_cell = ref
            ref_sheet = workbook.get(ref_sheet_name)
            if ref_sheet is not None:
                source = ref_sheet.get(ref_cell)
                if source is not None:
                    logging.debug(f"[Excel Parse] Following formula {cell.formula} -> {ref_sheet_name}!{ref_cell} = {source.value!r}")
                    return parse_numeric(source.value)
            else:
                logging.warning(f"[Excel Parse] Sheet '{ref_sheet_name}' not found for formula {cell.formula}")

    return parse_numeric(cell.value)


def extract_string_value(cell):
    """Returns a cell's value as a stripped string (used for metric names)."""
    if cell is None or cell.value is None or isinstance(cell.value, bool):
        return None
    value = cell.value
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return None
