# ==============================================================================
# dealer_reports/main/utils.py
# ------------------------------------------------------------------------------
# Shapes parse results into the flat rows the preview templates render.
# ==============================================================================
from dealer_reports.ingest.matcher import advisor_kpi_values, match_users_by_names
from dealer_reports.ingest.records import CSRParseResult, PAY_TYPE_CATEGORIES


def prepare_csr_preview(result, store_id):
    """
    One row per advisor with the matched team member and the KPI values,
    plus the department totals row.
    """
    matches = match_users_by_names([a.display_name for a in result.advisors], store_id)
    rows = []
    for advisor in result.advisors:
        match = matches.get(advisor.display_name)
        rows.append({
            'name': advisor.display_name,
            'employee_id': advisor.employee_id,
            'matched_name': match.matched_name if match else None,
            'match_type': match.match_type if match else None,
            'kpis': advisor_kpi_values(advisor),
        })
    kpi_names = []
    for row in rows:
        for kpi in row['kpis']:
            if kpi not in kpi_names:
                kpi_names.append(kpi)

    totals = {
        category: values
        for category, values in result.department_totals.items()
        if category in PAY_TYPE_CATEGORIES and values
    }
    return {'rows': rows, 'kpi_names': kpi_names, 'totals': totals}


def prepare_technician_preview(result, store_id):
    """One row per technician and month, with the matched team member."""
    matches = match_users_by_names([t.display_name for t in result.technicians], store_id)
    rows = []
    for tech in result.technicians:
        match = matches.get(tech.display_name)
        for monthly in tech.monthly_totals:
            rows.append({
                'name': tech.display_name,
                'matched_name': match.matched_name if match else None,
                'match_type': match.match_type if match else None,
                'month': monthly.month,
                'sold_hrs': monthly.sold_hrs,
                'clocked_in_hrs': monthly.clocked_in_hrs,
                'productive': monthly.productive,
                'weeks': len(tech.weekly_totals),
            })
    return {'rows': rows}


def prepare_report_preview(result, store_id):
    if isinstance(result, CSRParseResult):
        return prepare_csr_preview(result, store_id)
    return prepare_technician_preview(result, store_id)


def prepare_financial_preview(parsed, validation):
    """Groups metrics, sub-metrics and validation status per department."""
    by_status = {v['department_name']: v for v in validation}
    departments = []
    for dept_name in dict.fromkeys(list(parsed.metrics) + list(parsed.sub_metrics)):
        departments.append({
            'name': dept_name,
            'metrics': parsed.metrics.get(dept_name, {}),
            'sub_metrics': parsed.sub_metrics.get(dept_name, []),
            'validation': by_status.get(dept_name),
        })
    return departments
