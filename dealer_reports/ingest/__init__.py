# ==============================================================================
# dealer_reports/ingest
# ------------------------------------------------------------------------------
# Spreadsheet ingestion: workbook model, report parsers, the cell-mapping
# resolver for financial statements and the database importer.
# ==============================================================================
