# ==============================================================================
# config.py
# ------------------------------------------------------------------------------
# Configuration settings for the Flask application.
# Uses environment variables for sensitive data to keep them out of version control.
# ==============================================================================

import os
from dotenv import load_dotenv

# Determine the absolute path of the project directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load environment variables from a .env file located in the project root
load_dotenv(os.path.join(basedir, '.env'))

class Config:
    """
    Base configuration class. Contains default settings that can be overridden
    by environment-specific configurations.
    """
    # --- Security ---
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-should-really-set-a-secret-key-in-your-env-file'

    # Password for the admin panel (cell mappings, settings, import history)
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD') or 'change-this-default-password'

    # --- Database Configuration ---
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance/app.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- File Upload Configuration ---
    # Uploaded reports are parsed in memory; the folder only keeps a copy
    # of the original file for the import history.
    UPLOAD_FOLDER = os.path.join(basedir, 'instance/uploads')
    KEEP_UPLOADS = os.environ.get('KEEP_UPLOADS', '1') == '1'

    # Spreadsheet formats the ingest package knows how to read.
    ALLOWED_EXTENSIONS = {'.xlsx', '.xlsm', '.xls', '.csv'}

    MAX_CONTENT_LENGTH = 16 * 1024 * 1024
