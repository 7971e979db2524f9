# ==============================================================================
# dealer_reports/ingest/aggregate.py
# ------------------------------------------------------------------------------
# Turns per-day technician hours into weekly (Monday-start) and monthly
# rollups, and merges entities that appear more than once in a report.
# ==============================================================================

import datetime
import logging
from collections import Counter

from dealer_reports.ingest.records import (
    AdvisorData, TechnicianData, TechnicianDailyValue, TechnicianMonthlyTotal,
    TechnicianWeeklyTotal, empty_pay_type_metrics,
)

# Averages per advisor, not additive across blocks
RATE_HEADERS = frozenset({'elr', 'e.l.r.'})


def monday_of(day):
    """Returns the Monday that starts the week containing `day`."""
    return day - datetime.timedelta(days=day.weekday())


def month_key(day):
    return f'{day.year}-{day.month:02d}'


def productive(sold_hrs, clocked_in_hrs):
    """Sold hours per clocked-in hour; None unless clocked-in hours are positive."""
    if clocked_in_hrs is None or clocked_in_hrs <= 0:
        return None
    return sold_hrs / clocked_in_hrs


def normalize_name(name):
    return ' '.join(str(name or '').lower().split())


def is_rate_column(column, rate_columns=()):
    if column in rate_columns:
        return True
    return isinstance(column, str) and column.strip().lower() in RATE_HEADERS


def build_technician(name, sold_by_day, clocked_by_day, display_name=None):
    """
    Builds a TechnicianData from {date: hours} maps for sold and clocked-in hours.
    Days present in only one map count 0 for the other.
    """
    all_days = sorted(set(sold_by_day) | set(clocked_by_day))
    daily_values = [
        TechnicianDailyValue(day, sold_by_day.get(day, 0.0), clocked_by_day.get(day, 0.0))
        for day in all_days
    ]

    weeks, months = {}, {}
    for dv in daily_values:
        for buckets, key in ((weeks, monday_of(dv.date)), (months, month_key(dv.date))):
            totals = buckets.setdefault(key, [0.0, 0.0])
            totals[0] += dv.sold_hrs
            totals[1] += dv.clocked_in_hrs

    weekly_totals = [
        TechnicianWeeklyTotal(monday, sold, clocked, productive(sold, clocked))
        for monday, (sold, clocked) in sorted(weeks.items())
    ]
    monthly_totals = [
        TechnicianMonthlyTotal(month, sold, clocked, productive(sold, clocked))
        for month, (sold, clocked) in sorted(months.items())
    ]

    return TechnicianData(
        raw_name=name,
        display_name=display_name or name,
        daily_values=daily_values,
        weekly_totals=weekly_totals,
        monthly_totals=monthly_totals,
    )


def merge_duplicate_technicians(technicians):
    """
    Merges technicians whose names are equal after normalization by summing
    their hours day by day, then re-deriving the rollups. The first-seen name
    is kept. Keys are calendar dates, so merging an already merged list is a
    no-op.
    """
    merged = {}
    for tech in technicians:
        key = normalize_name(tech.raw_name)
        existing = merged.get(key)
        if existing is None:
            merged[key] = tech
            continue

        sold, clocked = {}, {}
        for dv in existing.daily_values + tech.daily_values:
            sold[dv.date] = sold.get(dv.date, 0.0) + dv.sold_hrs
            clocked[dv.date] = clocked.get(dv.date, 0.0) + dv.clocked_in_hrs
        merged[key] = build_technician(existing.raw_name, sold, clocked, existing.display_name)
        logging.info(f"[TechParse] Merged duplicate technician block: {tech.raw_name}")

    return list(merged.values())


def merge_duplicate_advisors(advisors, rate_columns=()):
    """
    Merges advisors whose display names are equal after normalization by
    summing their metrics per pay type and column.

    Rate columns (E.L.R. by header, plus any column index in `rate_columns`)
    are not summed: the first block's value is kept.
    """
    merged = {}
    for advisor in advisors:
        key = normalize_name(advisor.display_name)
        existing = merged.get(key)
        if existing is None:
            merged[key] = advisor
            continue

        combined = AdvisorData(
            raw_name=existing.raw_name,
            display_name=existing.display_name,
            employee_id=existing.employee_id,
            metrics=empty_pay_type_metrics(),
            metrics_by_index=empty_pay_type_metrics(),
        )
        for source in (existing, advisor):
            for attr in ('metrics', 'metrics_by_index'):
                target = getattr(combined, attr)
                for category, values in getattr(source, attr).items():
                    bucket = target.setdefault(category, {})
                    for column, value in values.items():
                        if is_rate_column(column, rate_columns):
                            bucket.setdefault(column, value)
                        else:
                            bucket[column] = bucket.get(column, 0.0) + value
        merged[key] = combined
        logging.info(f"[CSR Parse] Merged duplicate advisor block: {advisor.raw_name}")

    return list(merged.values())


def dominant_month(days):
    """The 'YYYY-MM' that most of the given dates fall in ('' for none)."""
    counts = Counter(month_key(day) for day in days)
    if not counts:
        return ''
    return counts.most_common(1)[0][0]
