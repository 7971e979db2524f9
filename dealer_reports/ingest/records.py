# ==============================================================================
# dealer_reports/ingest/records.py
# ------------------------------------------------------------------------------
# Typed result records produced by the report parsers. Every extracted value
# is Optional: a missing or unparsable cell is None, never an exception.
# Each parse result also carries a `diagnostics` list describing anything
# that was skipped or substituted along the way.
# ==============================================================================

import datetime
from dataclasses import asdict, dataclass, field
from typing import Optional

PAY_TYPE_CATEGORIES = ('customer', 'warranty', 'internal', 'total')


def empty_pay_type_metrics():
    return {category: {} for category in PAY_TYPE_CATEGORIES}


def _jsonable(value):
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class Record:
    def to_dict(self):
        """Plain-JSON view of the record (dates as ISO strings)."""
        return _jsonable(asdict(self))


# --- CSR productivity report ---

@dataclass
class AdvisorData(Record):
    raw_name: str
    display_name: str
    employee_id: str
    metrics: dict = field(default_factory=empty_pay_type_metrics)  # category -> header -> value
    metrics_by_index: dict = field(default_factory=empty_pay_type_metrics)  # category -> column -> value


@dataclass
class CSRParseResult(Record):
    store_name: str
    date_range: Optional[tuple]
    month: str
    advisors: list
    department_totals: dict
    department_totals_by_index: dict
    column_headers: list
    column_headers_with_index: list
    sheet_name: str = ''
    diagnostics: list = field(default_factory=list)


# --- Technician hours report ---

@dataclass
class TechnicianDailyValue(Record):
    date: datetime.date
    sold_hrs: float
    clocked_in_hrs: float


@dataclass
class TechnicianWeeklyTotal(Record):
    week_start_date: datetime.date  # the Monday of the week
    sold_hrs: float
    clocked_in_hrs: float
    productive: Optional[float]


@dataclass
class TechnicianMonthlyTotal(Record):
    month: str  # "YYYY-MM"
    sold_hrs: float
    clocked_in_hrs: float
    productive: Optional[float]


@dataclass
class TechnicianData(Record):
    raw_name: str
    display_name: str
    daily_values: list = field(default_factory=list)
    weekly_totals: list = field(default_factory=list)
    monthly_totals: list = field(default_factory=list)


@dataclass
class TechnicianHoursParseResult(Record):
    store_name: str
    month: str
    technicians: list
    detected_names: list
    sheet_name: str = ''
    diagnostics: list = field(default_factory=list)


# --- Financial statements ---

@dataclass
class SubMetricData(Record):
    parent_metric_key: str
    name: str
    value: Optional[float]
    order_index: int

    def metric_name(self):
        """The FinancialEntry.metric_name this sub-metric is stored under."""
        return f'sub:{self.parent_metric_key}:{self.order_index:03d}:{self.name}'


@dataclass
class ParsedFinancialData(Record):
    metrics: dict = field(default_factory=dict)  # department -> metric key -> value
    sub_metrics: dict = field(default_factory=dict)  # department -> [SubMetricData]
    ytd_snapshots: dict = field(default_factory=dict)  # department -> snapshot name -> YTD value
    diagnostics: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        """Rebuilds a parse result stored as JSON (see ImportLog.results_json)."""
        return cls(
            metrics={dept: dict(values) for dept, values in data.get('metrics', {}).items()},
            sub_metrics={
                dept: [SubMetricData(**sub) for sub in subs]
                for dept, subs in data.get('sub_metrics', {}).items()
            },
            ytd_snapshots={dept: dict(values) for dept, values in data.get('ytd_snapshots', {}).items()},
            diagnostics=list(data.get('diagnostics', [])),
        )
