# ==============================================================================
# dealer_reports/ingest/financial.py
# ------------------------------------------------------------------------------
# Reads dealership financial statements through the configurable cell
# mapping table: every (brand, department, metric) points at a sheet and
# cell, so a new statement template is supported by adding mapping rows.
# ==============================================================================

import logging
from collections import OrderedDict

from dealer_reports.ingest.cells import (
    extract_numeric_value, extract_string_value, parse_cell_reference,
)
from dealer_reports.ingest.records import ParsedFinancialData, SubMetricData
from dealer_reports.models import FinancialCellMapping, FinancialEntry

SUB_METRIC_PREFIX = 'sub:'
YTD_SNAPSHOT_PREFIX = 'ytd:'


# --- Mapping Lookup ---

def fetch_cell_mappings(brand, year=None):
    """
    Returns the cell mappings for a brand, one per (department, metric).

    With a year, a mapping whose effective_year equals it wins over a
    universal (year-less) one; if neither exists any other row for the pair
    is used. Without a year, universal rows win over year-specific ones.
    """
    rows = (FinancialCellMapping.query
            .filter_by(brand=brand)
            .order_by(FinancialCellMapping.id)
            .all())
    selected = select_mappings(rows, year)
    logging.info(f"[Excel Parse] {len(selected)} cell mappings selected for {brand} (year={year}, rows={len(rows)})")
    return selected


def select_mappings(rows, year=None):
    grouped = OrderedDict()
    for row in rows:
        grouped.setdefault((row.department_name, row.metric_key), []).append(row)

    selected = []
    for candidates in grouped.values():
        chosen = None
        if year is not None:
            chosen = next((m for m in candidates if m.effective_year == year), None)
        if chosen is None:
            chosen = next((m for m in candidates if m.effective_year is None), None)
        if chosen is None:
            # No exact or universal row: take the most recent year on file.
            chosen = max(candidates, key=lambda m: m.effective_year or 0)
        selected.append(chosen)
    return selected


def is_sub_metric_mapping(mapping):
    return bool(mapping.is_sub_metric) or mapping.metric_key.startswith(SUB_METRIC_PREFIX)


# --- Sub-metric Keys ---

def parse_sub_metric_key(metric_key):
    """
    Splits a sub-metric key into (parent_key, order_index, name).

    'sub:total_sales:002:Repair Shop' -> ('total_sales', 2, 'Repair Shop')
    'sub:total_sales:Repair Shop'     -> ('total_sales', None, 'Repair Shop')

    Returns None for keys that are not sub-metric keys.
    """
    if not metric_key or not metric_key.startswith(SUB_METRIC_PREFIX):
        return None
    parts = metric_key.split(':')
    if len(parts) < 3:
        return None
    if len(parts) >= 4 and parts[2].isdigit():
        return parts[1], int(parts[2]), ':'.join(parts[3:])
    return parts[1], None, ':'.join(parts[2:])


def sort_sub_metric_mappings(mappings):
    """
    Orders sub-metric mappings the way the rows appear on the statement:
    by the order index embedded in the key, otherwise by the row of the value
    cell. Names are never compared, so the order is not alphabetical.
    """
    def sort_key(item):
        position, mapping = item
        parsed = parse_sub_metric_key(mapping.metric_key)
        if parsed and parsed[1] is not None:
            return (0, parsed[1], position)
        cell = parse_cell_reference(mapping.cell_reference)
        return (1, cell[1] if cell else 0, position)

    return [m for _, m in sorted(enumerate(mappings), key=sort_key)]


# --- Workbook Parsing ---

def parse_financial_workbook(workbook, mappings):
    """
    Extracts every mapped metric and sub-metric from a financial statement.

    Args:
        workbook (Workbook): the loaded statement.
        mappings (list): FinancialCellMapping rows (see fetch_cell_mappings).

    Returns:
        ParsedFinancialData: metrics[department][metric_key] and
        sub_metrics[department] (in statement order). Cells that are empty
        or unreadable come back as None.
    """
    parsed = ParsedFinancialData()
    regular = [m for m in mappings if not is_sub_metric_mapping(m)]
    subs = [m for m in mappings if is_sub_metric_mapping(m)]
    logging.info(f"[Excel Parse] Regular mappings: {len(regular)}, Sub-metric mappings: {len(subs)}")

    for mapping in regular:
        dept_metrics = parsed.metrics.setdefault(mapping.department_name, {})
        dept_metrics[mapping.metric_key] = _read_mapped_value(
            workbook, mapping, mapping.cell_reference, parsed.diagnostics)
        if mapping.unit_cell_reference:
            dept_metrics[f'{mapping.metric_key}_units'] = _read_mapped_value(
                workbook, mapping, mapping.unit_cell_reference, parsed.diagnostics)
        logging.debug(f"[Excel Parse] {mapping.department_name} - {mapping.metric_key}: "
                      f"{mapping.sheet_name}!{mapping.cell_reference} -> {dept_metrics[mapping.metric_key]}")

    subs_by_dept = OrderedDict()
    for mapping in subs:
        subs_by_dept.setdefault(mapping.department_name, []).append(mapping)

    for dept_name, dept_mappings in subs_by_dept.items():
        results = parsed.sub_metrics.setdefault(dept_name, [])
        logging.info(f"[Excel Parse Sub] Processing {len(dept_mappings)} sub-metric mappings for {dept_name}")
        for position, mapping in enumerate(sort_sub_metric_mappings(dept_mappings), start=1):
            sub = _read_sub_metric(workbook, mapping, position, parsed.diagnostics)
            if sub is not None:
                results.append(sub)

    return parsed


def _read_mapped_value(workbook, mapping, reference, diagnostics):
    sheet = workbook.find_sheet(mapping.sheet_name, diagnostics)
    if sheet is None:
        return None
    if parse_cell_reference(reference) is None:
        logging.warning(f"[Excel Parse] Invalid cell reference: {reference}")
        diagnostics.append(f"{mapping.department_name} / {mapping.metric_key}: invalid cell reference '{reference}'")
        return None
    return extract_numeric_value(sheet.get(reference), workbook)


def _read_sub_metric(workbook, mapping, position, diagnostics):
    sheet = workbook.find_sheet(mapping.sheet_name, diagnostics)
    if sheet is None:
        return None

    parsed_key = parse_sub_metric_key(mapping.metric_key)
    name = None
    if mapping.name_cell_reference:
        name = extract_string_value(sheet.get(mapping.name_cell_reference))
    # A blank or one/two character label cell is a layout shift, not a name.
    if (not name or len(name) <= 2) and parsed_key:
        name = parsed_key[2]

    parent = mapping.parent_metric_key or (parsed_key[0] if parsed_key else None)
    if not name or not parent:
        logging.info(f"[Excel Parse Sub] Skipped: name={name!r}, parent_metric_key={parent!r}")
        diagnostics.append(f"{mapping.department_name} / {mapping.metric_key}: sub-metric without name or parent skipped")
        return None

    order_index = parsed_key[1] if parsed_key and parsed_key[1] is not None else position
    value = None
    if parse_cell_reference(mapping.cell_reference) is not None:
        value = extract_numeric_value(sheet.get(mapping.cell_reference), workbook)
    else:
        diagnostics.append(f"{mapping.department_name} / {mapping.metric_key}: invalid cell reference '{mapping.cell_reference}'")
    return SubMetricData(parent_metric_key=parent, name=name, value=value, order_index=order_index)


# --- Year-to-date Conversion ---

def previous_month(month):
    """'2026-02' -> '2026-01', '2026-01' -> '2025-12'."""
    year, mon = (int(part) for part in month.split('-'))
    if mon == 1:
        return f'{year - 1}-12'
    return f'{year}-{mon - 1:02d}'


def ytd_to_monthly(ytd_value, month, prior_ytd):
    """
    Recovers a month's own value from a year-to-date figure. January's YTD is
    the month itself; later months subtract the prior month's YTD snapshot.
    """
    if ytd_value is None:
        return None
    if month.endswith('-01') or prior_ytd is None:
        return ytd_value
    return ytd_value - prior_ytd


def ytd_snapshot_name(sub_metric):
    return f'{YTD_SNAPSHOT_PREFIX}{sub_metric.parent_metric_key}:{sub_metric.name}'


def convert_ytd_sub_metrics(parsed, month, departments_by_name):
    """
    Converts the sub-metric values of a YTD brand's statement into monthly
    values, in place. The original YTD figures are kept in
    parsed.ytd_snapshots so the importer can persist them for next month.
    """
    prior = previous_month(month)
    snapshots = {}
    for dept_name, sub_metrics in parsed.sub_metrics.items():
        department_id = departments_by_name.get(dept_name)
        dept_snapshots = snapshots.setdefault(dept_name, {})
        for sub in sub_metrics:
            ytd_value = sub.value
            snapshot_name = ytd_snapshot_name(sub)
            dept_snapshots[snapshot_name] = ytd_value

            prior_ytd = None
            if not month.endswith('-01') and department_id is not None:
                entry = FinancialEntry.query.filter_by(
                    department_id=department_id, month=prior, metric_name=snapshot_name).first()
                prior_ytd = entry.value if entry is not None else None
                if entry is None and ytd_value is not None:
                    parsed.diagnostics.append(
                        f"{dept_name} / {sub.name}: no {prior} YTD snapshot; using YTD value as monthly")

            sub.value = ytd_to_monthly(ytd_value, month, prior_ytd)
            logging.debug(f"[Excel Parse Sub] YTD {dept_name} - {sub.name}: {ytd_value} - {prior_ytd} -> {sub.value}")

    parsed.ytd_snapshots = snapshots
    return parsed
