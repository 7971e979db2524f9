# ==============================================================================
# dealer_reports/ingest/importer.py
# ------------------------------------------------------------------------------
# Compares parsed financial statements with what is already stored and
# writes them into the financial_entry table.
# ==============================================================================

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from dealer_reports import db
from dealer_reports.ingest.financial import SUB_METRIC_PREFIX
from dealer_reports.models import FinancialEntry, ImportLog

# Differences up to a dollar are rounding noise between statement and DB
MATCH_TOLERANCE = 1.0


@dataclass
class ValidationResult:
    department_name: str
    department_id: Optional[int]
    status: str  # 'match', 'mismatch', 'imported' or 'error'
    discrepancies: list = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ImportOutcome:
    success: bool
    imported_count: int = 0
    errors: list = field(default_factory=list)


def _round_cents(value):
    return None if value is None else round(value * 100) / 100


def values_match(excel_value, db_value):
    excel_rounded, db_rounded = _round_cents(excel_value), _round_cents(db_value)
    if excel_rounded is None and db_rounded is None:
        return True
    if excel_rounded is None or db_rounded is None:
        return False
    return abs(excel_rounded - db_rounded) <= MATCH_TOLERANCE


def validate_against_database(parsed, departments_by_name, month):
    """
    Checks each parsed department against the entries already stored for the
    month. A department with nothing stored yet is reported as 'imported'
    (it will be written as-is); otherwise every metric is compared.
    """
    results = []
    for dept_name, metrics in parsed.metrics.items():
        department_id = departments_by_name.get(dept_name)
        if department_id is None:
            results.append(ValidationResult(dept_name, None, 'error',
                                            error=f'Department "{dept_name}" not found in store'))
            continue

        existing = {
            e.metric_name: e.value
            for e in FinancialEntry.query.filter_by(department_id=department_id, month=month).all()
        }
        has_existing = any(existing.get(key) is not None for key in metrics)
        if not has_existing:
            results.append(ValidationResult(dept_name, department_id, 'imported'))
            continue

        discrepancies = []
        for metric_key, excel_value in metrics.items():
            db_value = existing.get(metric_key)
            if not values_match(excel_value, db_value):
                discrepancies.append({
                    'metric': metric_key,
                    'excel_value': _round_cents(excel_value),
                    'db_value': _round_cents(db_value),
                })
        results.append(ValidationResult(
            dept_name, department_id, 'mismatch' if discrepancies else 'match', discrepancies))

    return results


def _upsert_entry(department_id, month, metric_name, value, created_by):
    entry = FinancialEntry.query.filter_by(
        department_id=department_id, month=month, metric_name=metric_name).first()
    if entry is None:
        entry = FinancialEntry(department_id=department_id, month=month, metric_name=metric_name)
        db.session.add(entry)
    entry.value = value
    entry.created_by = created_by
    return entry


def import_financial_data(parsed, departments_by_name, month, user=None):
    """
    Writes parsed metrics for one month.

    Regular metrics are upserted (None values are skipped so a blank cell
    never wipes stored data). A department's sub-metrics replace the ones
    stored for the month: the old sub:* rows are deleted and the new rows
    inserted, including None values so the line item still shows up.
    Each department is written in its own transaction; a failure rolls back
    that department only and is reported in ImportOutcome.errors.
    """
    outcome = ImportOutcome(success=True)
    dept_names = list(dict.fromkeys(list(parsed.metrics) + list(parsed.sub_metrics)))

    for dept_name in dept_names:
        department_id = departments_by_name.get(dept_name)
        if department_id is None:
            logging.warning(f"[Import] Department '{dept_name}' not found in store; skipped")
            continue

        count = 0
        try:
            for metric_key, value in parsed.metrics.get(dept_name, {}).items():
                if value is None:
                    continue
                _upsert_entry(department_id, month, metric_key, value, user)
                count += 1

            sub_metrics = parsed.sub_metrics.get(dept_name, [])
            if sub_metrics:
                (FinancialEntry.query
                 .filter(FinancialEntry.department_id == department_id,
                         FinancialEntry.month == month,
                         FinancialEntry.metric_name.like(f'{SUB_METRIC_PREFIX}%'))
                 .delete(synchronize_session=False))
                for sub in sub_metrics:
                    db.session.add(FinancialEntry(
                        department_id=department_id, month=month,
                        metric_name=sub.metric_name(), value=sub.value, created_by=user))
                    count += 1

            for snapshot_name, ytd_value in parsed.ytd_snapshots.get(dept_name, {}).items():
                _upsert_entry(department_id, month, snapshot_name, ytd_value, user)

            db.session.commit()
            outcome.imported_count += count
            logging.info(f"[Import] {dept_name} {month}: {count} entries written")
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"[Import] Failed to import {dept_name} {month}: {e}", exc_info=True)
            outcome.success = False
            outcome.errors.append(f'{dept_name}: {e}')

    return outcome


def record_import_log(filename, report_type, month, store=None, status='parsed',
                      imported_count=0, diagnostics=None, results=None):
    """Stores an ImportLog row for the admin import history."""
    log = ImportLog(
        filename=filename,
        report_type=report_type,
        month=month,
        store_id=store.id if store is not None else None,
        status=status,
        imported_count=imported_count,
        diagnostics_json=json.dumps(diagnostics or [], ensure_ascii=False),
        results_json=json.dumps(results, ensure_ascii=False, default=str) if results is not None else None,
    )
    db.session.add(log)
    db.session.commit()
    return log
