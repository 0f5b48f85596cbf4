"""
Medication Marketplace API - Standalone Entry Point
===================================================
Run this to start the API server independently.

For integration into a parent Flask app, see medimarket/__init__.py for:
  - init_market_module()
  - create_market_blueprint()
  - ensure_tables_exist()

CLI (with FLASK_APP=run.py):
  flask init-db
  flask create-admin admin@example.com secret
"""
from medimarket import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=3000)
