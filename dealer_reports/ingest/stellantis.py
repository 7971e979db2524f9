# ==============================================================================
# dealer_reports/ingest/stellantis.py
# ------------------------------------------------------------------------------
# Parses Stellantis "data dump" statements: a single sheet of
# |value|account code| rows instead of a formatted statement. Account codes
# ending in M are monthly figures, codes ending in Y are year-to-date.
# ==============================================================================

import logging
import re

from dealer_reports.ingest.cells import parse_numeric
from dealer_reports.ingest.errors import ReportParseError
from dealer_reports.ingest.records import ParsedFinancialData, SubMetricData

# Main metric account codes per department (page 7 of the statement)
MAIN_METRIC_CODES = {
    'New Vehicle Department': {
        'P04': 'total_sales', 'R19': 'gp_net', 'K05': 'total_variable_expense',
        'K13': 'total_semi_fixed_expense', 'K14': 'department_profit',
        'E791': 'fixed_expense', 'E821': 'net',
    },
    'Used Vehicle Department': {
        'P13': 'total_sales', 'S09': 'gp_net', 'K20': 'total_variable_expense',
        'L04': 'total_semi_fixed_expense', 'L05': 'department_profit',
        'E792': 'fixed_expense', 'E822': 'net',
    },
    'Service Department': {
        'P04': 'total_sales', 'X11': 'gp_net', 'L14': 'total_variable_expense',
        'L15': 'department_profit', 'E793': 'fixed_expense', 'E823': 'net',
    },
    'Parts Department': {
        'W23': 'total_sales', 'Y10': 'gp_net', 'L24': 'total_variable_expense',
        'M01': 'department_profit', 'E794': 'fixed_expense', 'E824': 'net',
    },
    'Body Shop Department': {
        'W11': 'total_sales', 'X19': 'gp_net', 'J21': 'total_variable_expense',
        'J22': 'department_profit', 'E795': 'fixed_expense', 'E825': 'net',
    },
}

# Fixed expense lines 37-55, shared by all departments
FIXED_EXPENSE_NAMES = {
    37: 'SALARIES & WAGES - ADMIN & GENERAL',
    38: 'EMPLOYEE BENEFITS',
    39: 'PAYROLL TAXES',
    40: 'ADVERTISING GENERAL & INSTITUTIONAL',
    41: 'STATIONARY, OFFICE SUPPLIES & POSTAGE',
    42: 'LEGAL AUDITING, COLLECTION',
    43: 'COMPANY CAR EXPENSE',
    44: 'DUES, SUBSCRIPTIONS & CONTRIBUTIONS',
    45: 'DATA PROCESSING SERVICES / E-TOOLS',
    46: 'TRAVEL & ENTERTAINMENT',
    47: 'BAD DEBTS',
    48: 'MISCELLANEOUS',
    50: 'MAINTENANCE & REPAIRS - REAL ESTATE',
    51: 'INTEREST',
    52: 'INSURANCE, TAXES & LICENCES',
    54: 'HEAT, LIGHT, POWER & WATER',
    55: 'TELEPHONE',
}

# Last digit of the E6xx-E78x cell codes identifies the department
DEPARTMENT_DIGITS = {
    'New Vehicle Department': 1,
    'Used Vehicle Department': 2,
    'Service Department': 3,
    'Parts Department': 4,
    'Body Shop Department': 5,
}

# Department letter used in the raw dump codes (EXPS37M, SALESN24M, ...)
DEPARTMENT_LETTERS = {
    'New Vehicle Department': 'N',
    'Used Vehicle Department': 'U',
    'Service Department': 'S',
    'Parts Department': 'P',
    'Body Shop Department': 'B',
}

DATA_DUMP_PATTERNS = [
    re.compile(r'^EXP[NUSPB]\d+M$', re.IGNORECASE),
    re.compile(r'^SALES[NUSPB]\d+M$', re.IGNORECASE),
    re.compile(r'^COST[NUSPBF]\d+M$', re.IGNORECASE),
    re.compile(r'^ASSET\d+M$', re.IGNORECASE),
    re.compile(r'^LIAB\d+M$', re.IGNORECASE),
]
FORMATTED_SHEET_RE = re.compile(r'^(Chrysler\d+|Data|Stats)$', re.IGNORECASE)
SUB_METRIC_PARENT = 'total_fixed_expense'


def fixed_expense_cell_codes(department_name):
    """E601 .. E781 style codes for a department, mapped to expense line numbers."""
    digit = DEPARTMENT_DIGITS.get(department_name)
    if digit is None:
        return {}
    return {f'E{60 + i}{digit}': 37 + i for i in range(19)}


def is_stellantis_data_dump(workbook, min_codes=10, scan_rows=50):
    """
    True when the first sheet looks like an account-code dump: at least
    `min_codes` dump codes in column B of the first rows, and none of the
    sheet names a formatted Chrysler statement uses.
    """
    if any(FORMATTED_SHEET_RE.match(name) for name in workbook.sheet_names):
        logging.info("[Stellantis Check] File has standard Chrysler sheet names - NOT a data dump")
        return False
    sheet = workbook.first_sheet()
    if sheet is None:
        return False

    matched = 0
    for row in sheet.rows()[:scan_rows]:
        if len(row) > 1 and isinstance(row[1], str):
            code = row[1].strip().upper()
            if any(p.match(code) for p in DATA_DUMP_PATTERNS):
                matched += 1
    logging.info(f"[Stellantis Check] Found {matched} Stellantis codes in first {scan_rows} rows")
    return matched >= min_codes


def read_code_values(sheet):
    """Collects {ACCOUNT CODE: value} from the |value|code| rows of a dump sheet."""
    code_values = {}
    for row in sheet.rows():
        if len(row) < 2 or not isinstance(row[1], str) or not row[1].strip():
            continue
        value = parse_numeric(row[0])
        if value is not None:
            code_values[row[1].strip().upper()] = value
    return code_values


def parse_stellantis_workbook(workbook, department_names):
    """
    Extracts main metrics and fixed-expense sub-metrics for the requested
    departments from a Stellantis data dump.
    """
    sheet = workbook.first_sheet()
    if sheet is None:
        raise ReportParseError("No sheets found in workbook")

    code_values = read_code_values(sheet)
    logging.info(f"[Stellantis Parse] Found {len(code_values)} code-value pairs")

    parsed = ParsedFinancialData()
    for dept_name in department_names:
        main_codes = MAIN_METRIC_CODES.get(dept_name)
        if main_codes is None:
            parsed.diagnostics.append(f"No Stellantis account codes known for '{dept_name}'")
            continue
        metrics = parsed.metrics.setdefault(dept_name, {})
        subs = parsed.sub_metrics.setdefault(dept_name, [])

        for code, metric_key in main_codes.items():
            value = code_values.get(code + 'M', code_values.get(code))
            if value is not None:
                metrics[metric_key] = value

        order_index = 1
        for cell_code, expense_num in fixed_expense_cell_codes(dept_name).items():
            value = code_values.get(cell_code + 'M')
            name = FIXED_EXPENSE_NAMES.get(expense_num)
            if value is not None and name:
                subs.append(SubMetricData(SUB_METRIC_PARENT, name, value, order_index))
                order_index += 1

        # Raw dump codes (EXPB37M) when the statement has no E6xx cell codes
        letter = DEPARTMENT_LETTERS[dept_name]
        if not subs:
            for expense_num, name in FIXED_EXPENSE_NAMES.items():
                value = code_values.get(f'EXP{letter}{expense_num}M')
                if value is not None:
                    subs.append(SubMetricData(SUB_METRIC_PARENT, name, value, order_index))
                    order_index += 1

        logging.info(f"[Stellantis Parse] {dept_name}: {len(metrics)} metrics, {len(subs)} sub-metrics")

    return parsed
