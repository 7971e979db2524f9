# ==============================================================================
# dealer_reports/main/routes.py
# ------------------------------------------------------------------------------
# Defines all user-facing routes for the main application blueprint.
# This file acts as the main controller for the web interface.
# ==============================================================================

import os
import json
import re
from dataclasses import asdict
from datetime import datetime
from functools import wraps
from flask import (render_template, request, flash, redirect, url_for,
                   current_app, session, jsonify)
from werkzeug.utils import secure_filename
from sqlalchemy.exc import IntegrityError

from dealer_reports import db, csrf
from dealer_reports.main import bp
from dealer_reports.models import Store, FinancialCellMapping, AppSetting, ImportLog
from dealer_reports.ingest.validator import REPORT_TYPES, parse_report_file, parse_financial_file
from dealer_reports.ingest.importer import (validate_against_database, import_financial_data,
                                            record_import_log)
from dealer_reports.ingest.layouts import IngestConfig
from dealer_reports.ingest.records import ParsedFinancialData
from dealer_reports.main.forms import (AdminLoginForm, AppSettingForm, CellMappingForm, MONTH_PATTERN,
                                       UploadReportForm, ConfirmImportForm)
from dealer_reports.main.utils import prepare_report_preview, prepare_financial_preview

# --- Helper Functions ---

def allowed_file(filename):
    """Checks if the file extension is allowed based on the app config."""
    return '.' in filename and \
           os.path.splitext(filename)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']

def admin_required(f):
    """Decorator to protect admin routes with session-based authentication."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('admin_logged_in'):
            flash('You must log in to the admin panel to view this page.', 'warning')
            return redirect(url_for('main.admin_login'))
        return f(*args, **kwargs)
    return decorated_function

def keep_upload(filename, data):
    """Saves a copy of the upload when KEEP_UPLOADS is on."""
    if not current_app.config.get('KEEP_UPLOADS'):
        return
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    stamp = datetime.utcnow().strftime('%Y%m%d%H%M%S')
    with open(os.path.join(folder, f'{stamp}_{filename}'), 'wb') as fh:
        fh.write(data)

def _store_choices():
    return [(s.id, f'{s.name} ({s.brand})') for s in Store.query.order_by(Store.name).all()]

# --- Main Application Routes ---

@bp.route('/', methods=['GET', 'POST'])
def index():
    """Handles the main page with the report uploader."""
    form = UploadReportForm()
    form.store_id.choices = _store_choices()

    if form.validate_on_submit():
        upload = form.file.data
        filename = secure_filename(upload.filename)
        if not allowed_file(filename):
            flash('File type not allowed. Upload an .xlsx, .xlsm, .xls or .csv file.', 'danger')
            return redirect(request.url)

        data = upload.read()
        keep_upload(filename, data)
        store = db.session.get(Store, form.store_id.data)
        report_type = form.report_type.data

        if report_type == 'financial':
            month = form.month.data
            if not month:
                flash('Select the statement month for a financial statement.', 'warning')
                return redirect(request.url)
            return _handle_financial_upload(data, filename, store, month)

        result, errors = parse_report_file(data, filename, report_type)
        if errors:
            for error in errors:
                flash(error, 'danger')
            record_import_log(filename, report_type, form.month.data or None, store, status='failed',
                              diagnostics=errors)
            return redirect(request.url)

        log = record_import_log(filename, report_type, result.month, store, status='parsed',
                                diagnostics=result.diagnostics, results=result.to_dict())
        current_app.logger.info(f"Parsed {report_type} report '{filename}' for {store.name} ({result.month})")
        preview = prepare_report_preview(result, store.id)
        return render_template('report_preview.html', log=log, store=store, result=result,
                               preview=preview, report_label=REPORT_TYPES[report_type])

    return render_template('index.html', form=form)

def _handle_financial_upload(data, filename, store, month):
    parsed, errors = parse_financial_file(data, filename, store, month)
    if errors:
        for error in errors:
            flash(error, 'danger')
        record_import_log(filename, 'financial', month, store, status='failed', diagnostics=errors)
        return redirect(url_for('main.index'))

    validation = validate_against_database(parsed, store.departments_by_name(), month)
    results = {
        'parsed': parsed.to_dict(),
        'validation': [asdict(v) for v in validation],
    }
    log = record_import_log(filename, 'financial', month, store, status='validated',
                            diagnostics=parsed.diagnostics, results=results)
    current_app.logger.info(f"Validated financial statement '{filename}' for {store.name} {month}")
    return redirect(url_for('main.financial_preview', log_id=log.id))

@bp.route('/import/financial/<int:log_id>')
def financial_preview(log_id):
    """Shows parsed metrics and how they compare with the stored month."""
    log = ImportLog.query.get_or_404(log_id)
    if log.report_type != 'financial' or not log.results_json:
        flash('This upload has no financial data to preview.', 'warning')
        return redirect(url_for('main.index'))
    results = json.loads(log.results_json)
    parsed = ParsedFinancialData.from_dict(results['parsed'])
    departments = prepare_financial_preview(parsed, results.get('validation', []))
    return render_template('financial_preview.html', log=log, departments=departments,
                           diagnostics=parsed.diagnostics, form=ConfirmImportForm())

@bp.route('/import/financial/<int:log_id>/confirm', methods=['POST'])
def confirm_financial_import(log_id):
    """Writes a validated financial statement into financial_entry."""
    log = ImportLog.query.get_or_404(log_id)
    form = ConfirmImportForm()
    if not form.validate_on_submit():
        flash('The import request was not valid. Please try again.', 'danger')
        return redirect(url_for('main.financial_preview', log_id=log.id))
    if log.status == 'imported':
        flash('This statement has already been imported.', 'info')
        return redirect(url_for('main.financial_preview', log_id=log.id))

    parsed = ParsedFinancialData.from_dict(json.loads(log.results_json)['parsed'])
    store = db.session.get(Store, log.store_id)
    user = 'admin' if session.get('admin_logged_in') else None
    outcome = import_financial_data(parsed, store.departments_by_name(), log.month, user=user)

    log.status = 'imported' if outcome.success else 'failed'
    log.imported_count = outcome.imported_count
    if outcome.errors:
        log.diagnostics_json = json.dumps(log.diagnostics() + outcome.errors, ensure_ascii=False)
    db.session.commit()

    if outcome.success:
        flash(f'Imported {outcome.imported_count} entries for {store.name} {log.month}.', 'success')
    else:
        for error in outcome.errors:
            flash(error, 'danger')
    return redirect(url_for('main.financial_preview', log_id=log.id))

@bp.route('/api/parse/<report_type>', methods=['POST'])
@csrf.exempt
def api_parse(report_type):
    """
    Parses an uploaded report and returns the result as JSON.
    Financial statements need `store_id` and `month` form fields.
    """
    if report_type not in REPORT_TYPES:
        return jsonify({'errors': [f"Unknown report type '{report_type}'."]}), 404
    upload = request.files.get('file')
    if upload is None or upload.filename == '':
        return jsonify({'errors': ['No file was uploaded.']}), 400
    filename = secure_filename(upload.filename)
    if not allowed_file(filename):
        return jsonify({'errors': ['File type not allowed.']}), 400
    data = upload.read()

    if report_type == 'financial':
        store = db.session.get(Store, request.form.get('store_id', type=int) or 0)
        month = request.form.get('month', '')
        if store is None or not month:
            return jsonify({'errors': ['store_id and month are required for financial statements.']}), 400
        if not re.match(MONTH_PATTERN, month):
            return jsonify({'errors': [f"Invalid month '{month}'. Use the YYYY-MM format, e.g. 2026-01."]}), 400
        result, errors = parse_financial_file(data, filename, store, month)
    else:
        result, errors = parse_report_file(data, filename, report_type)

    if errors:
        return jsonify({'errors': errors}), 422
    return jsonify(result.to_dict())

@bp.route('/history')
@admin_required
def history():
    """Displays a list of all past uploads for the admin."""
    logs = ImportLog.query.order_by(ImportLog.upload_timestamp.desc()).all()
    return render_template('history.html', logs=logs)

# --- Admin Panel Routes ---
@bp.route('/admin/login', methods=['GET', 'POST'])
def admin_login():
    """Handles admin login."""
    form = AdminLoginForm()
    if form.validate_on_submit():
        if form.password.data == current_app.config.get('ADMIN_PASSWORD', 'default_password'):
            session['admin_logged_in'] = True
            flash('You are now logged in.', 'success')
            return redirect(url_for('main.admin_dashboard'))
        else:
            flash('Invalid password.', 'danger')
    return render_template('admin_login.html', form=form, title='Admin login')

@bp.route('/admin/logout')
def admin_logout():
    """Handles admin logout."""
    session.pop('admin_logged_in', None)
    flash('You have been logged out.', 'info')
    return redirect(url_for('main.index'))

@bp.route('/admin')
@admin_required
def admin_dashboard():
    """Main admin dashboard listing the financial cell mappings."""
    brand = request.args.get('brand')
    query = FinancialCellMapping.query
    if brand:
        query = query.filter(db.func.lower(FinancialCellMapping.brand) == brand.lower())
    mappings = query.order_by(FinancialCellMapping.brand, FinancialCellMapping.department_name,
                              FinancialCellMapping.effective_year, FinancialCellMapping.id).all()
    brands = [b for (b,) in db.session.query(FinancialCellMapping.brand).distinct().order_by(FinancialCellMapping.brand)]
    return render_template('admin.html', mappings=mappings, brands=brands, current_brand=brand)

def _fill_mapping(mapping, form):
    mapping.brand = form.brand.data.strip()
    mapping.department_name = form.department_name.data.strip()
    mapping.metric_key = form.metric_key.data.strip()
    mapping.sheet_name = form.sheet_name.data.strip()
    mapping.cell_reference = form.cell_reference.data.strip().upper()
    mapping.name_cell_reference = (form.name_cell_reference.data or '').strip().upper() or None
    mapping.parent_metric_key = (form.parent_metric_key.data or '').strip() or None
    mapping.is_sub_metric = bool(form.is_sub_metric.data)
    mapping.effective_year = form.effective_year.data
    mapping.unit_cell_reference = (form.unit_cell_reference.data or '').strip().upper() or None

@bp.route('/admin/mapping/add', methods=['GET', 'POST'])
@admin_required
def add_mapping():
    form = CellMappingForm()
    if form.validate_on_submit():
        mapping = FinancialCellMapping()
        _fill_mapping(mapping, form)
        try:
            db.session.add(mapping)
            db.session.commit()
            flash('Cell mapping added.', 'success')
            return redirect(url_for('main.admin_dashboard', brand=mapping.brand))
        except IntegrityError:
            db.session.rollback()
            flash('A mapping for this brand, department, metric and year already exists.', 'danger')
    return render_template('admin_form.html', form=form, title='Add cell mapping')

@bp.route('/admin/mapping/edit/<int:mapping_id>', methods=['GET', 'POST'])
@admin_required
def edit_mapping(mapping_id):
    mapping = FinancialCellMapping.query.get_or_404(mapping_id)
    form = CellMappingForm(obj=mapping)
    if form.validate_on_submit():
        _fill_mapping(mapping, form)
        try:
            db.session.commit()
            flash('Cell mapping updated.', 'success')
            return redirect(url_for('main.admin_dashboard', brand=mapping.brand))
        except IntegrityError:
            db.session.rollback()
            flash('A mapping for this brand, department, metric and year already exists.', 'danger')
    return render_template('admin_form.html', form=form, title=f'Edit cell mapping: {mapping.metric_key}')

@bp.route('/admin/mapping/delete/<int:mapping_id>', methods=['POST'])
@admin_required
def delete_mapping(mapping_id):
    mapping = FinancialCellMapping.query.get_or_404(mapping_id)
    brand = mapping.brand
    db.session.delete(mapping)
    db.session.commit()
    flash('Cell mapping deleted.', 'success')
    return redirect(url_for('main.admin_dashboard', brand=brand))

@bp.route('/admin/settings', methods=['GET'])
@admin_required
def admin_settings():
    settings = AppSetting.query.order_by(AppSetting.key).all()
    return render_template('admin_settings.html', settings=settings)

@bp.route('/admin/setting/edit/<int:setting_id>', methods=['GET', 'POST'])
@admin_required
def edit_setting(setting_id):
    setting = AppSetting.query.get_or_404(setting_id)
    form = AppSettingForm(obj=setting)
    if form.validate_on_submit():
        new_value = form.value.data
        if setting.value_type == 'json':
            try:
                parsed_json = json.loads(new_value)
                new_value = json.dumps(parsed_json, ensure_ascii=False)
            except json.JSONDecodeError:
                flash('The value entered for this setting is not valid JSON.', 'danger')
                return render_template('admin_form.html', form=form, title=f'Edit setting: {setting.key}', description=setting.description)
        setting.value = new_value
        db.session.commit()
        IngestConfig.reset()
        flash(f'Setting "{setting.key}" updated and the cached parser configuration cleared.', 'success')
        return redirect(url_for('main.admin_settings'))
    return render_template('admin_form.html', form=form, title=f'Edit setting: {setting.key}', description=setting.description)
