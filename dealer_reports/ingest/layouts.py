# ==============================================================================
# dealer_reports/ingest/layouts.py
# ------------------------------------------------------------------------------
# Describes the loosely-structured report layouts the parsers understand.
# Keyword lists and patterns live here as data and are passed into the
# locator/classifier functions, so a new DMS export variant only needs a new
# layout (or an AppSetting override), never a change to the parsing code.
# ==============================================================================

import logging
import re
from dataclasses import dataclass, field, replace

from dealer_reports.models import AppSetting

DEALERSHIP_NAME_KEYWORDS = [
    'chevrolet', 'ford', 'toyota', 'honda', 'dodge', 'chrysler', 'jeep', 'ram', 'gmc',
    'buick', 'cadillac', 'nissan', 'hyundai', 'kia', 'mazda', 'subaru', 'volkswagen',
    'bmw', 'mercedes', 'audi', 'lexus', 'infiniti', 'acura', 'volvo', 'lincoln',
    'mitsubishi', 'fiat', 'alfa', 'maserati', 'porsche', 'jaguar', 'land rover', 'mini',
    'smart', 'dealership', 'motors', 'automotive', 'auto group',
]


@dataclass
class CSRLayout:
    """Layout of a CSR (service advisor) productivity report."""

    expected_headers: list = field(default_factory=lambda: [
        'pay type', '#so', 'sold hrs', 'lab sold', 'e.l.r.', 'parts sold', 'elr',
    ])
    min_header_matches: int = 2
    min_header_cells: int = 3

    # (category, substrings, exact labels), checked in order
    pay_types: list = field(default_factory=lambda: [
        ('customer', ['customer'], ['cp']),
        ('warranty', ['warranty'], []),
        ('internal', ['internal'], []),
        ('total', ['total'], []),
    ])

    advisor_pattern: str = r'Advisor\s+(\d+)\s*-\s*(.+)'
    section_markers: list = field(default_factory=lambda: [
        'all repair orders', 'department total', 'grand total',
    ])
    marker_scan_columns: int = 5

    preferred_sheets: list = field(default_factory=lambda: [
        'All Repair Orders', 'Summary', 'Service Advisor', 'Data',
    ])
    detection_sheet_keywords: list = field(default_factory=lambda: [
        'repair order', 'service advisor', 'productivity',
    ])
    detection_scan_rows: int = 50
    date_scan_rows: int = 10
    store_scan_rows: int = 5
    store_keywords: list = field(default_factory=lambda: list(DEALERSHIP_NAME_KEYWORDS))

    def advisor_regex(self):
        return re.compile(self.advisor_pattern, re.IGNORECASE)


@dataclass
class TechnicianLayout:
    """Layout of a technician hours report (one block of rows per technician)."""

    sold_keywords: list = field(default_factory=lambda: [
        'sold hrs', 'sold hours', 'clsd hrs', 'closed hrs', 'closed hours',
        'open and closed', 'open & closed',
    ])
    clocked_in_keywords: list = field(default_factory=lambda: [
        'clocked in', 'clock in', 'avail', 'available',
    ])
    excluded_name_words: list = field(default_factory=lambda: [
        'technician', 'tech', 'advisor', 'date', 'day', 'week', 'month', 'total',
        'sold hrs', 'clocked', 'available', 'productive', 'efficiency', 'hours',
        'name', 'employee', 'store', 'department', 'grand total', 'dept total',
    ])
    sheet_pattern: str = r'tech|hour|productivity'
    date_header_scan_rows: int = 30
    min_date_columns: int = 3
    store_scan_rows: int = 5
    store_keywords: list = field(default_factory=lambda: [
        'chevrolet', 'ford', 'toyota', 'honda', 'dodge', 'chrysler', 'jeep', 'ram',
        'gmc', 'buick', 'hyundai', 'kia', 'mazda', 'motors', 'auto',
    ])


DEFAULT_CSR_LAYOUT = CSRLayout()
DEFAULT_TECHNICIAN_LAYOUT = TechnicianLayout()

# Brands whose statements carry sub-metric values as year-to-date figures.
DEFAULT_YTD_BRANDS = ['Honda']

# AppSetting key -> (layout name, attribute)
SETTING_OVERRIDES = {
    'CSR_EXPECTED_HEADERS': ('csr', 'expected_headers'),
    'CSR_MIN_HEADER_MATCHES': ('csr', 'min_header_matches'),
    'CSR_SECTION_MARKERS': ('csr', 'section_markers'),
    'CSR_ADVISOR_PATTERN': ('csr', 'advisor_pattern'),
    'CSR_PREFERRED_SHEETS': ('csr', 'preferred_sheets'),
    'TECH_SOLD_KEYWORDS': ('technician', 'sold_keywords'),
    'TECH_CLOCKED_IN_KEYWORDS': ('technician', 'clocked_in_keywords'),
    'TECH_EXCLUDED_NAME_WORDS': ('technician', 'excluded_name_words'),
    'TECH_DATE_HEADER_SCAN_ROWS': ('technician', 'date_header_scan_rows'),
}


# --- Configuration Loader Class ---

class IngestConfig:
    """
    A singleton class holding the parser layouts, with any overrides an
    administrator stored in the AppSetting table applied on top of the
    defaults. The database is queried once per application lifecycle;
    saving a setting in the admin panel resets the instance.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            logging.info("Creating and loading IngestConfig instance...")
            cls._instance = super(IngestConfig, cls).__new__(cls)
            try:
                cls._instance.load_settings()
                logging.info("IngestConfig loaded successfully.")
            except Exception as e:
                cls._instance = None
                logging.error(f"Could not load parser settings from database. Error: {e}", exc_info=True)
                raise
        return cls._instance

    @classmethod
    def reset(cls):
        cls._instance = None

    def load_settings(self):
        """Loads all parser settings from the AppSetting table into attributes."""
        settings = AppSetting.query.all()
        settings_dict = {s.key: s.get_value() for s in settings}

        csr_overrides, tech_overrides = {}, {}
        for key, (layout_name, attr) in SETTING_OVERRIDES.items():
            if key not in settings_dict:
                continue
            target = csr_overrides if layout_name == 'csr' else tech_overrides
            target[attr] = settings_dict[key]
            logging.info(f"  - Layout override {key} -> {layout_name}.{attr}")

        self.csr_layout = replace(DEFAULT_CSR_LAYOUT, **csr_overrides)
        self.technician_layout = replace(DEFAULT_TECHNICIAN_LAYOUT, **tech_overrides)
        self.ytd_brands = settings_dict.get('YTD_BRANDS', DEFAULT_YTD_BRANDS)

    def is_ytd_brand(self, brand):
        if not brand:
            return False
        return brand.strip().lower() in {b.lower() for b in self.ytd_brands}
