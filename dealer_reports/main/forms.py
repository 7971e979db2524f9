# ==============================================================================
# dealer_reports/main/forms.py
# ------------------------------------------------------------------------------
# Defines web forms using Flask-WTF for user input and validation.
# ==============================================================================

from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired
from wtforms import StringField, IntegerField, SubmitField, SelectField, PasswordField, TextAreaField, BooleanField
from wtforms.validators import DataRequired, NumberRange, InputRequired, Optional, Regexp, Length

from dealer_reports.ingest.validator import REPORT_TYPES

CELL_REFERENCE_PATTERN = r'^[A-Za-z]+[0-9]+$'
MONTH_PATTERN = r'^\d{4}-(0[1-9]|1[0-2])$'


class AppSettingForm(FlaskForm):
    """Form for editing a single application setting."""
    value = TextAreaField('Value', validators=[DataRequired()], render_kw={'rows': 3})
    submit = SubmitField('Save changes')


class AdminLoginForm(FlaskForm):
    """Form for admin login."""
    password = PasswordField('Password', validators=[InputRequired(message="Password is required.")])
    submit = SubmitField('Log in')


class UploadReportForm(FlaskForm):
    """Form for uploading a report for a store and month."""
    report_type = SelectField('Report type', choices=list(REPORT_TYPES.items()),
                              validators=[InputRequired()])
    store_id = SelectField('Store', coerce=int, validators=[InputRequired(message="Select a store.")])
    month = StringField('Month (YYYY-MM)', validators=[
        Optional(), Regexp(MONTH_PATTERN, message="Use the YYYY-MM format, e.g. 2026-01.")])
    file = FileField('Report file', validators=[FileRequired(message="Choose a file to upload.")])
    submit = SubmitField('Upload')


class ConfirmImportForm(FlaskForm):
    """Confirms writing a validated financial statement to the database."""
    submit = SubmitField('Import')


class CellMappingForm(FlaskForm):
    """Form for adding or editing a financial cell mapping."""
    brand = StringField('Brand', validators=[DataRequired(message="This field is required."), Length(max=64)])
    department_name = StringField('Department', validators=[DataRequired(message="This field is required."), Length(max=128)])
    metric_key = StringField('Metric key', validators=[DataRequired(message="This field is required."), Length(max=256)])
    sheet_name = StringField('Sheet', validators=[DataRequired(message="This field is required."), Length(max=128)])
    cell_reference = StringField('Value cell', validators=[
        DataRequired(message="This field is required."),
        Regexp(CELL_REFERENCE_PATTERN, message="Use an A1-style reference, e.g. D6.")])
    name_cell_reference = StringField('Name cell (sub-metrics)', validators=[
        Optional(), Regexp(CELL_REFERENCE_PATTERN, message="Use an A1-style reference, e.g. B25.")])
    parent_metric_key = StringField('Parent metric key (sub-metrics)', validators=[Optional(), Length(max=128)])
    is_sub_metric = BooleanField('Sub-metric')
    effective_year = IntegerField('Effective year (blank = all years)', validators=[
        Optional(), NumberRange(min=2000, max=2100)])
    unit_cell_reference = StringField('Unit cell', validators=[
        Optional(), Regexp(CELL_REFERENCE_PATTERN, message="Use an A1-style reference, e.g. E6.")])
    submit = SubmitField('Save mapping')
