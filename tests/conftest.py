# tests/conftest.py

import io

import pytest
from openpyxl import Workbook as OpenpyxlWorkbook

from config import Config


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    KEEP_UPLOADS = False
    ADMIN_PASSWORD = "test-password"


@pytest.fixture(scope="module")
def app_with_db():
    """
    Creates a new app instance for a test module, sets up an in-memory database,
    and yields the app within an application context.
    """
    from dealer_reports import create_app, db

    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app  # The tests will run here
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clean_db(app_with_db):
    """Yields the db handle and empties every table (and the parser config cache) afterwards."""
    from dealer_reports import db
    from dealer_reports.ingest.layouts import IngestConfig

    IngestConfig.reset()
    yield db
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    IngestConfig.reset()


@pytest.fixture
def client(app_with_db, clean_db):
    return app_with_db.test_client()


def xlsx_bytes(sheets):
    """
    Builds an .xlsx file in memory.
    `sheets` maps sheet name -> list of rows, or -> {cell reference: value}.
    """
    wb = OpenpyxlWorkbook()
    wb.remove(wb.active)
    for name, content in sheets.items():
        ws = wb.create_sheet(name)
        if isinstance(content, dict):
            for ref, value in content.items():
                ws[ref] = value
        else:
            for row in content:
                ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def make_xlsx():
    return xlsx_bytes
