"""
Integration Example - Mounting the marketplace in a parent Flask app
====================================================================
"""
from flask import Flask

parent_app = Flask(__name__)


@parent_app.route('/')
def home():
    return {'app': 'My Main App', 'features': ['medimarket', 'other']}


# ──────────────────────────────────────────────
# OPTION 1: Shared database
# The marketplace tables live in a 'medimarket' schema
# inside the parent's existing database.
# ──────────────────────────────────────────────

def integrate_shared_database():
    from medimarket import create_market_blueprint, ensure_tables_exist, init_market_module

    parent_db_config = {
        'host': 'localhost',
        'port': '5432',
        'database': 'parent_app_db',
        'user': 'postgres',
        'password': 'your_password'
    }

    init_market_module(parent_app, db_config=parent_db_config, schema='medimarket')
    ensure_tables_exist(parent_app)
    parent_app.register_blueprint(create_market_blueprint(), url_prefix='/market/api')

    # Now available at:
    #   GET  /market/api/medicaments?nom=doli&maxprix=5&latitude=3.848&longitude=11.502
    #   POST /market/api/connexion
    #   GET  /market/api/pharmacies
    #   GET  /market/api/health


# ──────────────────────────────────────────────
# OPTION 2: External connection pool
# ──────────────────────────────────────────────

def integrate_with_pool():
    import psycopg2.pool
    from medimarket import create_market_blueprint, init_market_module

    pool = psycopg2.pool.ThreadedConnectionPool(
        minconn=2,
        maxconn=10,
        host='localhost',
        port='5432',
        database='parent_app_db',
        user='postgres',
        password='your_password'
    )

    init_market_module(parent_app, pool=pool, schema='medimarket')
    parent_app.register_blueprint(create_market_blueprint(), url_prefix='/market/api')


if __name__ == '__main__':
    integrate_shared_database()
    parent_app.run(debug=True, host='0.0.0.0', port=8000)
