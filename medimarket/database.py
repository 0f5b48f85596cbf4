"""
Database Connection and Utilities
=================================
Supports both standalone connections and shared DB from a parent app.
The parent app can hand over a connection pool through init_market_module(pool=...).
"""
import logging
import psycopg2
from psycopg2 import extras
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PostgresStore:
    """
    Connection factory for the marketplace tables.

    Args:
        db_config: Dict with keys host, port, database, user, password.
        schema: PostgreSQL schema holding the tables (default: 'public').
        pool: Optional external pool with getconn()/putconn(), or an object with connect().
    """

    def __init__(self, db_config, schema='public', pool=None):
        self.db_config = dict(db_config)
        self.schema = schema
        self._external_pool = pool

    def qualified_table(self, table_name):
        """
        Return a schema-qualified table name.

        Args:
            table_name: The base table name (e.g., 'medicaments').

        Returns:
            str: Schema-qualified name (e.g., 'medimarket.medicaments').
        """
        return f"{self.schema}.{table_name}"

    @contextmanager
    def connection(self):
        """
        Context manager for database connections.
        Uses the external pool if set, otherwise creates a new psycopg2 connection.

        Usage:
            with store.connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query)
        """
        pool = self._external_pool
        conn = None
        from_pool = False

        try:
            if pool is not None and hasattr(pool, 'getconn'):
                conn = pool.getconn()
                from_pool = True
            elif pool is not None and hasattr(pool, 'connect'):
                conn = pool.connect()
            else:
                conn = psycopg2.connect(**self.db_config)

            if self.schema != 'public':
                cursor = conn.cursor()
                cursor.execute(f"SET search_path TO {self.schema}, public")
                cursor.close()

            yield conn
        finally:
            if conn:
                if from_pool and hasattr(pool, 'putconn'):
                    pool.putconn(conn)
                else:
                    conn.close()

    @contextmanager
    def cursor(self, commit=False):
        """
        Context manager for database cursors with DictCursor.

        Args:
            commit: If True, commits the transaction after the block succeeds.
        """
        with self.connection() as conn:
            cursor = conn.cursor(cursor_factory=extras.DictCursor)
            try:
                yield cursor
                if commit:
                    conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def test_connection(self):
        """Test database connection."""
        try:
            with self.cursor() as cursor:
                cursor.execute("SELECT version();")
                pg_version = cursor.fetchone()[0]
            return {
                'status': 'connected',
                'backend': 'postgres',
                'postgresql': pg_version,
                'schema': self.schema
            }
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return {
                'status': 'error',
                'backend': 'postgres',
                'error': str(e)
            }

    def ensure_tables_exist(self):
        """
        Create the marketplace tables if they don't exist.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        s = self.schema

        with self.cursor(commit=True) as cursor:
            cursor.execute(f"CREATE SCHEMA IF NOT EXISTS {s}")

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {s}.pharmacies (
                    id SERIAL PRIMARY KEY,
                    nom VARCHAR(255) NOT NULL,
                    adresse VARCHAR(255) NOT NULL,
                    latitude DOUBLE PRECISION,
                    longitude DOUBLE PRECISION,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {s}.utilisateurs (
                    id SERIAL PRIMARY KEY,
                    email VARCHAR(255) NOT NULL UNIQUE,
                    password VARCHAR(255) NOT NULL,
                    role VARCHAR(20) NOT NULL
                        CHECK (role IN ('utilisateur', 'pharmacien', 'admin')),
                    telephone VARCHAR(50),
                    valide BOOLEAN NOT NULL DEFAULT FALSE,
                    pharmacie_id INTEGER REFERENCES {s}.pharmacies(id) ON DELETE SET NULL
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {s}.medicaments (
                    id SERIAL PRIMARY KEY,
                    nom VARCHAR(255) NOT NULL,
                    prix DOUBLE PRECISION NOT NULL CHECK (prix >= 0),
                    quantite INTEGER NOT NULL CHECK (quantite >= 0),
                    description TEXT,
                    date_poste TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
                    pharmacien_id INTEGER NOT NULL REFERENCES {s}.utilisateurs(id) ON DELETE CASCADE,
                    pharmacie_id INTEGER REFERENCES {s}.pharmacies(id) ON DELETE SET NULL
                )
            """)

            cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_med_nom ON {s}.medicaments (LOWER(nom))")
            cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_med_prix ON {s}.medicaments (prix)")
            cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_med_pharmacien ON {s}.medicaments (pharmacien_id)")

        logger.info("Marketplace tables ensured in schema '%s'", s)
