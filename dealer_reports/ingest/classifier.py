# ==============================================================================
# dealer_reports/ingest/classifier.py
# ------------------------------------------------------------------------------
# Labels report rows by their role (pay type, sold hours, clocked-in hours)
# and decides whether a label cell looks like a person's name.
# Rows that cannot be classified are skipped by the callers, not reported
# as errors: an unexpected layout degrades to partial data.
# ==============================================================================

import datetime
import re

from dealer_reports.ingest.layouts import DEFAULT_CSR_LAYOUT, DEFAULT_TECHNICIAN_LAYOUT

NON_ALPHANUMERIC_RE = re.compile(r'[^a-z0-9 ]')
DATE_STRING_RE = re.compile(r'^\d{1,2}[/-]\d{1,2}[/-]\d{2,4}$')
MONTH_PREFIX_RE = re.compile(r'^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)', re.IGNORECASE)

PAY_TYPES = ('customer', 'warranty', 'internal', 'total')
SOLD = 'sold'
CLOCKED_IN = 'clocked_in'


def normalize_label(value):
    """Lower-cases a label and drops everything but letters, digits and spaces."""
    if value is None:
        return ''
    return NON_ALPHANUMERIC_RE.sub('', str(value).lower()).strip()


def classify_pay_type(label, layout=DEFAULT_CSR_LAYOUT):
    """
    Maps a pay-type cell ("Customer Pay", "CP", "Warranty", "Total") to one of
    customer, warranty, internal or total. Returns None for anything else.
    """
    text = normalize_label(label)
    if not text:
        return None
    for category, substrings, exact in layout.pay_types:
        if text in exact or any(s in text for s in substrings):
            return category
    return None


def _contains_any(text, keywords):
    for keyword in keywords:
        keyword = keyword.lower()
        if keyword in text or normalize_label(keyword) in text:
            return True
    return False


def is_sold_hours_label(label, layout=DEFAULT_TECHNICIAN_LAYOUT):
    text = normalize_label(label)
    return bool(text) and _contains_any(text, layout.sold_keywords)


def is_clocked_in_label(label, layout=DEFAULT_TECHNICIAN_LAYOUT):
    text = normalize_label(label)
    return bool(text) and _contains_any(text, layout.clocked_in_keywords)


def classify_hours_row(label, layout=DEFAULT_TECHNICIAN_LAYOUT):
    """Returns 'sold', 'clocked_in' or None for a technician report row label."""
    if is_sold_hours_label(label, layout):
        return SOLD
    if is_clocked_in_label(label, layout):
        return CLOCKED_IN
    return None


def looks_like_person_name(value, excluded_words, known_labels=frozenset()):
    """
    Heuristic used to spot the first row of a technician block: a short piece
    of text with at least one letter that is not a date, a month name or one
    of the report's own labels.

    Args:
        value: the raw cell value from the label column.
        excluded_words: header/label words that are never names ("total", "tech").
        known_labels: lower-cased row labels already seen in this report.
    """
    if value is None or isinstance(value, (bool, int, float, datetime.date)):
        return False
    text = str(value).strip()
    if len(text) < 2 or len(text) > 60:
        return False
    low = text.lower()
    for word in excluded_words:
        if low == word or low.startswith(word + ' ') or low.endswith(' ' + word):
            return False
    if low in known_labels:
        return False
    if not re.search(r'[a-zA-Z]', text):
        return False
    if DATE_STRING_RE.match(text):
        return False
    if MONTH_PREFIX_RE.match(text) and len(text) < 12:
        return False
    return True
