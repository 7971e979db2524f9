import json
from dealer_reports import db
from dealer_reports.models import AppSetting, FinancialCellMapping
from dealer_reports.ingest.layouts import DEFAULT_CSR_LAYOUT, DEFAULT_TECHNICIAN_LAYOUT, DEFAULT_YTD_BRANDS

DEFAULT_SETTINGS = {
    # key: [value, description, value_type]
    'CSR_EXPECTED_HEADERS': [json.dumps(DEFAULT_CSR_LAYOUT.expected_headers), 'Column labels that identify the header row of a CSR productivity report (JSON list)', 'json'],
    'CSR_MIN_HEADER_MATCHES': [str(DEFAULT_CSR_LAYOUT.min_header_matches), 'How many expected labels a row needs to count as the header row', 'int'],
    'CSR_SECTION_MARKERS': [json.dumps(DEFAULT_CSR_LAYOUT.section_markers), 'Labels that start the department totals block (JSON list)', 'json'],
    'CSR_ADVISOR_PATTERN': [DEFAULT_CSR_LAYOUT.advisor_pattern, 'Regular expression for advisor headers; group 1 is the employee id, group 2 the name', 'string'],
    'CSR_PREFERRED_SHEETS': [json.dumps(DEFAULT_CSR_LAYOUT.preferred_sheets), 'Sheet names tried first when reading a CSR report (JSON list)', 'json'],
    'TECH_SOLD_KEYWORDS': [json.dumps(DEFAULT_TECHNICIAN_LAYOUT.sold_keywords), 'Row labels for sold hours in technician reports (JSON list)', 'json'],
    'TECH_CLOCKED_IN_KEYWORDS': [json.dumps(DEFAULT_TECHNICIAN_LAYOUT.clocked_in_keywords), 'Row labels for clocked-in hours in technician reports (JSON list)', 'json'],
    'TECH_EXCLUDED_NAME_WORDS': [json.dumps(DEFAULT_TECHNICIAN_LAYOUT.excluded_name_words), 'Words that mean a cell is a label, not a technician name (JSON list)', 'json'],
    'TECH_DATE_HEADER_SCAN_ROWS': [str(DEFAULT_TECHNICIAN_LAYOUT.date_header_scan_rows), 'How many rows to scan for the daily date header', 'int'],
    'YTD_BRANDS': [json.dumps(DEFAULT_YTD_BRANDS), 'Brands whose statements report sub-metrics year-to-date (JSON list)', 'json'],
}

DEFAULT_CELL_MAPPINGS = [
    # (brand, department, metric_key, sheet, cell)
    ('Nissan', 'Service Department', 'total_sales', 'Nissan3', 'D6'),
    ('Nissan', 'Service Department', 'gp_net', 'Nissan3', 'D7'),
    ('Nissan', 'Service Department', 'sales_expense', 'Nissan3', 'D20'),
    ('Nissan', 'Service Department', 'total_direct_expenses', 'Nissan3', 'D38'),
    ('Nissan', 'Service Department', 'total_fixed_expense', 'Nissan3', 'D61'),
    ('Nissan', 'Parts Department', 'total_sales', 'Nissan3', 'H6'),
    ('Nissan', 'Parts Department', 'gp_net', 'Nissan3', 'H7'),
    ('Nissan', 'Parts Department', 'sales_expense', 'Nissan3', 'H20'),
    ('Nissan', 'Parts Department', 'total_direct_expenses', 'Nissan3', 'H38'),
    ('Nissan', 'Parts Department', 'total_fixed_expense', 'Nissan3', 'H61'),
]

def seed_data():
    """Populates the database with default parser settings and cell mappings."""
    # Seed App Settings
    for key, data in DEFAULT_SETTINGS.items():
        setting = AppSetting.query.filter_by(key=key).first()
        if not setting: # Only add if it doesn't exist
            setting = AppSetting(key=key, value=data[0], description=data[1], value_type=data[2])
            db.session.add(setting)
            print(f'Seeding setting: {key}')

    # Seed Cell Mappings
    if FinancialCellMapping.query.count() == 0:
        print('Seeding default financial cell mappings...')
        for brand, dept, metric, sheet, cell in DEFAULT_CELL_MAPPINGS:
            mapping = FinancialCellMapping(
                brand=brand, department_name=dept, metric_key=metric,
                sheet_name=sheet, cell_reference=cell
            )
            db.session.add(mapping)

    db.session.commit()
    print('Seeding complete.')
