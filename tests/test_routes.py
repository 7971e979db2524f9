# tests/test_routes.py

import io
import json

import pytest

from dealer_reports.ingest.layouts import IngestConfig
from dealer_reports.models import (
    AppSetting, Department, FinancialCellMapping, FinancialEntry, ImportLog, Store,
)

from test_csr_report import CSR_ROWS


@pytest.fixture
def nissan_store(clean_db):
    db = clean_db
    store = Store(name="Murray Nissan", brand="Nissan")
    store.departments.append(Department(name="Service Department"))
    db.session.add(store)
    db.session.add(FinancialCellMapping(brand="Nissan", department_name="Service Department",
                                        metric_key="total_sales", sheet_name="Nissan3", cell_reference="D6"))
    db.session.commit()
    return store


@pytest.fixture
def admin_client(client):
    client.post('/admin/login', data={'password': 'test-password'})
    return client


def _upload(client, url, data, filename, **fields):
    fields['file'] = (io.BytesIO(data), filename)
    return client.post(url, data=fields, content_type='multipart/form-data')


def test_index_lists_stores(client, nissan_store):
    response = client.get('/')
    assert response.status_code == 200
    assert b'Murray Nissan (Nissan)' in response.data


def test_csr_upload_renders_preview_and_logs(client, nissan_store, make_xlsx):
    response = _upload(client, '/', make_xlsx({'All Repair Orders': CSR_ROWS}), 'csr.xlsx',
                       report_type='csr', store_id=str(nissan_store.id), month='')

    assert response.status_code == 200
    assert b'Kayla Bender' in response.data
    log = ImportLog.query.one()
    assert log.report_type == 'csr'
    assert log.status == 'parsed'
    assert log.month == '2026-01'


def test_bad_upload_is_reported(client, nissan_store, make_xlsx):
    response = _upload(client, '/', make_xlsx({'Data': [['a', 'b', 'c']]}), 'csr.xlsx',
                       report_type='csr', store_id=str(nissan_store.id))
    assert response.status_code == 302
    assert ImportLog.query.one().status == 'failed'

    response = _upload(client, '/', b'hello', 'notes.txt', report_type='csr', store_id=str(nissan_store.id))
    assert response.status_code == 302
    assert ImportLog.query.count() == 1


def test_financial_upload_validate_then_import(client, nissan_store, make_xlsx):
    data = make_xlsx({'Nissan3': {'D6': '$1,234'}})
    response = _upload(client, '/', data, 'statement.xlsx', report_type='financial',
                       store_id=str(nissan_store.id), month='2026-01')
    assert response.status_code == 302

    log = ImportLog.query.one()
    assert log.status == 'validated'
    preview = client.get(f'/import/financial/{log.id}')
    assert preview.status_code == 200
    assert b'total_sales' in preview.data
    assert b'1,234.00' in preview.data

    response = client.post(f'/import/financial/{log.id}/confirm')
    assert response.status_code == 302
    entry = FinancialEntry.query.filter_by(metric_name='total_sales', month='2026-01').one()
    assert entry.value == 1234.0
    assert ImportLog.query.filter_by(id=log.id).one().status == 'imported'

    # a second confirm does not import twice
    client.post(f'/import/financial/{log.id}/confirm')
    assert FinancialEntry.query.count() == 1


def test_financial_upload_requires_month(client, nissan_store, make_xlsx):
    response = _upload(client, '/', make_xlsx({'Nissan3': {'D6': 1}}), 'statement.xlsx',
                       report_type='financial', store_id=str(nissan_store.id), month='')
    assert response.status_code == 302
    assert ImportLog.query.count() == 0


def test_api_parse(client, nissan_store, make_xlsx):
    response = _upload(client, '/api/parse/csr', make_xlsx({'All Repair Orders': CSR_ROWS}), 'csr.xlsx')
    assert response.status_code == 200
    body = response.get_json()
    assert [a['display_name'] for a in body['advisors']] == ['Kayla Bender', 'Sam Lee']
    assert body['date_range'] == ['2026-01-01', '2026-01-31']

    response = _upload(client, '/api/parse/financial', make_xlsx({'Nissan3': {'D6': 5}}), 'f.xlsx',
                       store_id=str(nissan_store.id), month='2026-01')
    assert response.get_json()['metrics'] == {'Service Department': {'total_sales': 5.0}}

    response = _upload(client, '/api/parse/financial', make_xlsx({'Nissan3': {'D6': 5}}), 'f.xlsx')
    assert response.status_code == 400

    response = _upload(client, '/api/parse/financial', make_xlsx({'Nissan3': {'D6': 5}}), 'f.xlsx',
                       store_id=str(nissan_store.id), month='Feb 2026')
    assert response.status_code == 400
    assert 'YYYY-MM' in response.get_json()['errors'][0]

    response = _upload(client, '/api/parse/technician', make_xlsx({'Data': [['x']]}), 't.xlsx')
    assert response.status_code == 422
    assert 'date header row' in response.get_json()['errors'][0]

    assert client.post('/api/parse/payroll').status_code == 404


def test_admin_pages_require_login(client):
    for url in ('/admin', '/admin/settings', '/history', '/admin/mapping/add'):
        response = client.get(url)
        assert response.status_code == 302
        assert '/admin/login' in response.headers['Location']


def test_admin_login_rejects_wrong_password(client):
    response = client.post('/admin/login', data={'password': 'nope'})
    assert response.status_code == 200
    assert client.get('/admin').status_code == 302


def test_mapping_crud(admin_client, clean_db):
    response = admin_client.post('/admin/mapping/add', data={
        'brand': 'Nissan', 'department_name': 'Parts Department', 'metric_key': 'total_sales',
        'sheet_name': 'Nissan3', 'cell_reference': 'h6', 'effective_year': '2026',
    })
    assert response.status_code == 302
    mapping = FinancialCellMapping.query.one()
    assert mapping.cell_reference == 'H6'
    assert mapping.effective_year == 2026
    assert mapping.is_sub_metric is False

    response = admin_client.post('/admin/mapping/add', data={
        'brand': 'Nissan', 'department_name': 'Parts Department', 'metric_key': 'gp_net',
        'sheet_name': 'Nissan3', 'cell_reference': 'H',
    })
    assert response.status_code == 200
    assert FinancialCellMapping.query.count() == 1

    response = admin_client.post(f'/admin/mapping/edit/{mapping.id}', data={
        'brand': 'Nissan', 'department_name': 'Parts Department', 'metric_key': 'total_sales',
        'sheet_name': 'Nissan3', 'cell_reference': 'H7', 'effective_year': '',
    })
    assert response.status_code == 302
    clean_db.session.refresh(mapping)
    assert mapping.cell_reference == 'H7'
    assert mapping.effective_year is None

    listing = admin_client.get('/admin?brand=nissan')
    assert b'H7' in listing.data

    assert admin_client.post(f'/admin/mapping/delete/{mapping.id}').status_code == 302
    assert FinancialCellMapping.query.count() == 0


def test_edit_setting_validates_json_and_resets_config(admin_client, clean_db):
    db = clean_db
    setting = AppSetting(key='YTD_BRANDS', value='["Honda"]', value_type='json')
    db.session.add(setting)
    db.session.commit()
    IngestConfig()
    assert IngestConfig._instance is not None

    response = admin_client.post(f'/admin/setting/edit/{setting.id}', data={'value': '[not json'})
    assert response.status_code == 200
    assert json.loads(AppSetting.query.one().value) == ['Honda']

    response = admin_client.post(f'/admin/setting/edit/{setting.id}', data={'value': '["Honda", "Acura"]'})
    assert response.status_code == 302
    assert IngestConfig._instance is None
    assert IngestConfig().is_ytd_brand('Acura')


def test_history_lists_uploads(admin_client, nissan_store, make_xlsx):
    _upload(admin_client, '/', make_xlsx({'All Repair Orders': CSR_ROWS}), 'csr.xlsx',
            report_type='csr', store_id=str(nissan_store.id))
    response = admin_client.get('/history')
    assert response.status_code == 200
    assert b'csr.xlsx' in response.data
