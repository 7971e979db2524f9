# ==============================================================================
# dealer_reports/main/filters.py
# ------------------------------------------------------------------------------
# Defines custom Jinja2 template filters for the application.
# ==============================================================================

from dealer_reports.main import bp

@bp.app_template_filter('to_money')
def to_money_filter(s):
    """
    Formats a number with thousands separators and two decimals.
    Example: 1234567.5 -> "1,234,567.50"; None -> "".
    """
    if s is None:
        return ''
    try:
        return "{:,.2f}".format(float(s))
    except (ValueError, TypeError):
        return s

@bp.app_template_filter('to_ratio')
def to_ratio_filter(s):
    """Formats a productivity ratio as a percentage; None shows as a dash."""
    if s is None:
        return '-'
    try:
        return "{:.1%}".format(float(s))
    except (ValueError, TypeError):
        return s
