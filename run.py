# ==============================================================================
# run.py
# ------------------------------------------------------------------------------
# The main entry point to launch the Flask application.
# ==============================================================================

from dealer_reports import create_app, db
from dealer_reports.models import (AppSetting, Store, Department, FinancialCellMapping,
                                   FinancialEntry, TeamMember, ScorecardUserAlias, ImportLog)

# Create the Flask application instance using the factory function
app = create_app()

@app.shell_context_processor
def make_shell_context():
    """Provides a shell context for the `flask shell` command."""
    return {
        'db': db,
        'AppSetting': AppSetting,
        'Store': Store,
        'Department': Department,
        'FinancialCellMapping': FinancialCellMapping,
        'FinancialEntry': FinancialEntry,
        'TeamMember': TeamMember,
        'ScorecardUserAlias': ScorecardUserAlias,
        'ImportLog': ImportLog,
    }

if __name__ == '__main__':
    app.run(debug=True)
