# ==============================================================================
# dealer_reports/models.py
# ------------------------------------------------------------------------------
# Defines the database schema using SQLAlchemy ORM models.
# ==============================================================================

from datetime import datetime
from dealer_reports import db
import json


class Store(db.Model):
    """A dealership. The brand selects which cell mapping template applies."""
    __tablename__ = 'store'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    brand = db.Column(db.String(64), index=True)

    departments = db.relationship('Department', backref='store', lazy='dynamic', cascade="all, delete-orphan")
    team_members = db.relationship('TeamMember', backref='store', lazy='dynamic', cascade="all, delete-orphan")

    def departments_by_name(self):
        """Maps department name -> department id, the shape the importer expects."""
        return {d.name: d.id for d in self.departments}

    def __repr__(self):
        return f'<Store {self.id}: {self.name} ({self.brand})>'


class Department(db.Model):
    __tablename__ = 'department'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey('store.id'), nullable=False)

    entries = db.relationship('FinancialEntry', backref='department', lazy='dynamic', cascade="all, delete-orphan")

    __table_args__ = (db.UniqueConstraint('store_id', 'name', name='_store_department_uc'),)

    def __repr__(self):
        return f'<Department {self.id}: {self.name}>'


class FinancialCellMapping(db.Model):
    """
    Maps a (brand, department, metric) to the sheet and cell that holds its value
    in the brand's financial statement workbook. Managed via the Admin Panel so a
    new statement template can be supported without code changes.

    Rows without an effective_year are "universal" and apply to every year
    that has no year-specific row of its own.
    """
    __tablename__ = 'financial_cell_mapping'
    id = db.Column(db.Integer, primary_key=True)
    brand = db.Column(db.String(64), nullable=False, index=True)
    department_name = db.Column(db.String(128), nullable=False)
    metric_key = db.Column(db.String(256), nullable=False)
    sheet_name = db.Column(db.String(128), nullable=False)
    cell_reference = db.Column(db.String(16), nullable=False)

    # Sub-metric support: the row label is read live from name_cell_reference
    name_cell_reference = db.Column(db.String(16), nullable=True)
    parent_metric_key = db.Column(db.String(128), nullable=True)
    is_sub_metric = db.Column(db.Boolean, default=False, nullable=False)

    effective_year = db.Column(db.Integer, nullable=True, index=True)
    unit_cell_reference = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('brand', 'department_name', 'metric_key', 'effective_year', name='_brand_dept_metric_year_uc'),
    )

    def __repr__(self):
        year = self.effective_year or 'all years'
        return f'<FinancialCellMapping {self.brand}/{self.department_name}/{self.metric_key} -> {self.sheet_name}!{self.cell_reference} ({year})>'


class FinancialEntry(db.Model):
    """
    One imported value per department, month and metric.
    Sub-metrics are stored under metric names of the form
    sub:{parent_key}:{order:03d}:{name}.
    """
    __tablename__ = 'financial_entry'
    id = db.Column(db.Integer, primary_key=True)
    department_id = db.Column(db.Integer, db.ForeignKey('department.id'), nullable=False)
    month = db.Column(db.String(7), nullable=False, index=True)  # "YYYY-MM"
    metric_name = db.Column(db.String(256), nullable=False)
    value = db.Column(db.Float, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('department_id', 'month', 'metric_name', name='_dept_month_metric_uc'),)

    def __repr__(self):
        return f'<FinancialEntry {self.department_id} {self.month} {self.metric_name}={self.value}>'


class TeamMember(db.Model):
    """A person on a store's team that report advisors/technicians are matched to."""
    __tablename__ = 'team_member'
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(128), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey('store.id'), nullable=False)

    def __repr__(self):
        return f'<TeamMember {self.id}: {self.full_name}>'


class ScorecardUserAlias(db.Model):
    """Remembers that a name as printed in a DMS report belongs to a team member."""
    __tablename__ = 'scorecard_user_alias'
    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('store.id'), nullable=False)
    alias_name = db.Column(db.String(128), nullable=False)
    team_member_id = db.Column(db.Integer, db.ForeignKey('team_member.id'), nullable=False)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    team_member = db.relationship('TeamMember')

    __table_args__ = (db.UniqueConstraint('store_id', 'alias_name', name='_store_alias_uc'),)

    def __repr__(self):
        return f'<ScorecardUserAlias {self.alias_name} -> {self.team_member_id}>'


class ImportLog(db.Model):
    """
    Stores metadata for each uploaded report and what was done with it.
    """
    __tablename__ = 'import_log'
    id = db.Column(db.Integer, primary_key=True)
    filename = db.Column(db.String(256), nullable=False)
    report_type = db.Column(db.String(32), nullable=False)  # financial, csr, technician
    month = db.Column(db.String(7), index=True)
    status = db.Column(db.String(32), default='parsed')
    imported_count = db.Column(db.Integer, default=0)
    store_id = db.Column(db.Integer, db.ForeignKey('store.id'), nullable=True)
    upload_timestamp = db.Column(db.DateTime, index=True, default=datetime.utcnow)

    # Parse diagnostics and validation results, stored as JSON strings
    diagnostics_json = db.Column(db.Text, nullable=True)
    results_json = db.Column(db.Text, nullable=True)

    store = db.relationship('Store')

    def diagnostics(self):
        return json.loads(self.diagnostics_json) if self.diagnostics_json else []

    def __repr__(self):
        return f'<ImportLog {self.id}: {self.filename} ({self.report_type})>'


class AppSetting(db.Model):
    """
    Stores key-value pairs for parser heuristics and business rules
    (keyword lists, scan limits, YTD brands). This makes report-format
    variants configurable through the admin panel.
    """
    __tablename__ = 'app_setting'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)
    description = db.Column(db.String(512))  # For hints in the admin panel
    value_type = db.Column(db.String(32), default='string')  # e.g., 'float', 'int', 'string', 'json'

    def __repr__(self):
        return f'<AppSetting {self.key}: {self.value}>'

    def get_value(self):
        """Casts the string value to its correct Python type."""
        if self.value_type == 'float':
            return float(self.value)
        if self.value_type == 'int':
            return int(self.value)
        if self.value_type == 'json':
            return json.loads(self.value)
        return self.value
