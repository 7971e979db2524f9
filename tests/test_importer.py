# tests/test_importer.py

import pytest

from dealer_reports.ingest.importer import (
    import_financial_data, record_import_log, validate_against_database, values_match,
)
from dealer_reports.ingest.records import ParsedFinancialData, SubMetricData
from dealer_reports.models import Department, FinancialEntry, ImportLog, Store


@pytest.fixture
def store(clean_db):
    db = clean_db
    store = Store(name="Murray Nissan", brand="Nissan")
    store.departments.append(Department(name="Service Department"))
    store.departments.append(Department(name="Parts Department"))
    db.session.add(store)
    db.session.commit()
    return store


def _entries(department_id, month):
    return {
        e.metric_name: e.value
        for e in FinancialEntry.query.filter_by(department_id=department_id, month=month).all()
    }


def test_values_match_tolerance():
    assert values_match(100.0, 100.99)
    assert values_match(None, None)
    assert not values_match(100.0, 101.5)
    assert not values_match(None, 1.0)


def test_import_writes_metrics_and_sub_metrics(store):
    departments = store.departments_by_name()
    service_id = departments["Service Department"]
    parsed = ParsedFinancialData(
        metrics={"Service Department": {"total_sales": 1234.0, "gp_net": None}},
        sub_metrics={"Service Department": [
            SubMetricData("total_sales", "Repair Shop", 900.0, 1),
            SubMetricData("total_sales", "Body Shop", None, 2),
        ]},
    )

    outcome = import_financial_data(parsed, departments, "2026-01", user="admin")

    assert outcome.success
    assert outcome.imported_count == 3
    assert _entries(service_id, "2026-01") == {
        "total_sales": 1234.0,
        "sub:total_sales:001:Repair Shop": 900.0,
        "sub:total_sales:002:Body Shop": None,
    }


def test_reimport_replaces_sub_metrics_and_keeps_unmentioned_metrics(store):
    departments = store.departments_by_name()
    service_id = departments["Service Department"]
    first = ParsedFinancialData(
        metrics={"Service Department": {"total_sales": 1000.0, "gp_net": 400.0}},
        sub_metrics={"Service Department": [SubMetricData("total_sales", "Old Line", 10.0, 1)]},
    )
    import_financial_data(first, departments, "2026-01")

    second = ParsedFinancialData(
        metrics={"Service Department": {"total_sales": 1100.0, "gp_net": None}},
        sub_metrics={"Service Department": [SubMetricData("total_sales", "New Line", 20.0, 1)]},
    )
    import_financial_data(second, departments, "2026-01")

    entries = _entries(service_id, "2026-01")
    assert entries["total_sales"] == 1100.0
    assert entries["gp_net"] == 400.0  # a blank cell never wipes stored data
    assert "sub:total_sales:001:Old Line" not in entries
    assert entries["sub:total_sales:001:New Line"] == 20.0


def test_failed_department_rolls_back_and_others_still_import(store):
    departments = store.departments_by_name()
    service_id = departments["Service Department"]
    parts_id = departments["Parts Department"]
    import_financial_data(ParsedFinancialData(
        metrics={"Service Department": {"total_sales": 1000.0}},
        sub_metrics={"Service Department": [SubMetricData("total_sales", "Repair Shop", 900.0, 1)]},
    ), departments, "2026-01")

    # Two lines with the same name and position collide on the unique constraint.
    parsed = ParsedFinancialData(
        metrics={
            "Service Department": {"total_sales": 1500.0},
            "Parts Department": {"total_sales": 300.0},
        },
        sub_metrics={"Service Department": [
            SubMetricData("total_sales", "Body Shop", 100.0, 1),
            SubMetricData("total_sales", "Body Shop", 200.0, 1),
        ]},
    )
    outcome = import_financial_data(parsed, departments, "2026-01")

    assert outcome.success is False
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith("Service Department:")
    assert outcome.imported_count == 1
    assert _entries(service_id, "2026-01") == {
        "total_sales": 1000.0,
        "sub:total_sales:001:Repair Shop": 900.0,
    }
    assert _entries(parts_id, "2026-01") == {"total_sales": 300.0}


def test_import_persists_ytd_snapshots(store):
    departments = store.departments_by_name()
    parsed = ParsedFinancialData(
        sub_metrics={"Service Department": [SubMetricData("total_sales", "Repair Shop", 2000.0, 1)]},
        ytd_snapshots={"Service Department": {"ytd:total_sales:Repair Shop": 5000.0}},
    )
    import_financial_data(parsed, departments, "2026-02")

    entries = _entries(departments["Service Department"], "2026-02")
    assert entries["ytd:total_sales:Repair Shop"] == 5000.0
    assert entries["sub:total_sales:001:Repair Shop"] == 2000.0


def test_unknown_department_is_skipped(store):
    parsed = ParsedFinancialData(metrics={"Body Shop Department": {"total_sales": 1.0}})
    outcome = import_financial_data(parsed, store.departments_by_name(), "2026-01")
    assert outcome.success
    assert outcome.imported_count == 0


def test_validate_against_database(store):
    departments = store.departments_by_name()
    import_financial_data(
        ParsedFinancialData(metrics={"Service Department": {"total_sales": 1000.0, "gp_net": 400.0}}),
        departments, "2026-01")

    parsed = ParsedFinancialData(metrics={
        "Service Department": {"total_sales": 1000.4, "gp_net": 450.0},
        "Parts Department": {"total_sales": 50.0},
        "Body Shop Department": {"total_sales": 1.0},
    })
    results = {r.department_name: r for r in validate_against_database(parsed, departments, "2026-01")}

    service = results["Service Department"]
    assert service.status == "mismatch"
    assert service.discrepancies == [{"metric": "gp_net", "excel_value": 450.0, "db_value": 400.0}]
    assert results["Parts Department"].status == "imported"
    assert results["Body Shop Department"].status == "error"
    assert "not found" in results["Body Shop Department"].error


def test_record_import_log(store, clean_db):
    log = record_import_log("statement.xlsx", "financial", "2026-01", store, status="validated",
                            diagnostics=["Sheet 'Nissan3' not found"], results={"parsed": {}})
    stored = clean_db.session.get(ImportLog, log.id)
    assert stored.store_id == store.id
    assert stored.diagnostics() == ["Sheet 'Nissan3' not found"]
    assert stored.status == "validated"
