# ==============================================================================
# dealer_reports/ingest/errors.py
# ------------------------------------------------------------------------------
# Exceptions raised by the report parsers.
# ==============================================================================


class ReportParseError(ValueError):
    """
    Raised when an uploaded report cannot be parsed at all: the file is not
    a readable workbook, it has no sheets, or the header row the parser
    needs is missing. The message is shown to the user as-is.
    """
