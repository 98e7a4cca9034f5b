# inventory_intelligence/db/connection.py
import os
import urllib.parse
from typing import Dict, Any, Literal, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from supabase import create_client, Client

from inventory_intelligence.config import config
from inventory_intelligence.exceptions import DatabaseError

# "postgresql" covers every SQLAlchemy URL, including SQLite in tests
Backend = Literal["postgresql", "supabase"]

def configured_backend() -> str:
    """Backend named by DATABASE.type, with any trailing INI comment stripped."""
    value = config.get('DATABASE', 'type', default='postgresql') or 'postgresql'
    return value.split('#')[0].strip().lower()

def sqlalchemy_url() -> str:
    """Build the PostgreSQL URL from the DATABASE section."""
    password = urllib.parse.quote_plus(config.get('DATABASE', 'password', default='postgres'))
    return (
        f"{config.get('DATABASE', 'engine', default='postgresql')}://"
        f"{config.get('DATABASE', 'username', default='postgres')}:{password}"
        f"@{config.get('DATABASE', 'host', default='localhost')}"
        f":{config.get_int('DATABASE', 'port', default=5432)}"
        f"/{config.get('DATABASE', 'database', default='postgres')}"
    )

def engine_options(url: str) -> Dict[str, Any]:
    """Keyword arguments for create_engine; pool sizing only applies to PostgreSQL."""
    options = {'echo': config.get_boolean('DATABASE', 'echo', default=False)}
    if url.startswith('postgresql'):
        options.update(
            pool_size=config.get_int('DATABASE', 'pool_size', default=10),
            max_overflow=config.get_int('DATABASE', 'max_overflow', default=20),
            pool_timeout=config.get_int('DATABASE', 'pool_timeout', default=30),
            pool_recycle=config.get_int('DATABASE', 'pool_recycle', default=1800)
        )
    return options

def supabase_credentials() -> Dict[str, str]:
    """Supabase URL and key; environment variables win over the INI file."""
    url = os.getenv('SUPABASE_URL')
    key = os.getenv('SUPABASE_SERVICE_ROLE_KEY') or os.getenv('SUPABASE_KEY')
    if url and key:
        return {'url': url, 'key': key}

    return {
        'url': config.get('SUPABASE', 'url', default=''),
        'key': config.get('SUPABASE', 'key', default='')
    }


class DatabaseConnection:
    """Process-wide handle on either a SQLAlchemy engine or a Supabase client.

    Nothing connects until the first use, so importing the package never
    touches the network.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._backend = None
            cls._instance._engine = None
            cls._instance._sessions = None
            cls._instance._client = None
        return cls._instance

    def initialize(self, connection_string: Optional[str] = None):
        """Connect to the configured backend.

        Args:
            connection_string: Optional SQLAlchemy URL. When given it is used
                as is and the configured type is ignored.
        """
        if connection_string is not None:
            self._connect_sqlalchemy(connection_string)
            return

        backend = configured_backend()
        if backend == "supabase":
            self._connect_supabase()
        elif backend == "postgresql":
            self._connect_sqlalchemy(sqlalchemy_url())
        else:
            raise DatabaseError(f"Unknown database type: {backend}", details={'type': backend})

    def _connect_sqlalchemy(self, url: str):
        try:
            engine = create_engine(url, **engine_options(url))
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            raise DatabaseError(f"Failed to connect to {url.split('://')[0]} database: {str(e)}")

        self._engine = engine
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._backend = "postgresql"

    def _connect_supabase(self):
        credentials = supabase_credentials()
        if not credentials['url'] or not credentials['key']:
            raise DatabaseError("Supabase URL and key must be provided")

        try:
            client = create_client(credentials['url'], credentials['key'])
            client.table('intelligence_settings').select('id').limit(1).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to connect to Supabase: {str(e)}")

        self._client = client
        self._backend = "supabase"

    def _require(self, backend: Backend, what: str):
        if self._backend is None:
            self.initialize()
        if self._backend != backend:
            raise DatabaseError(f"{what} requires a {backend} connection, not {self._backend}")

    @contextmanager
    def session_scope(self) -> Session:
        """Session committed on clean exit and rolled back on error."""
        self._require("postgresql", "session_scope")

        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @property
    def supabase(self) -> Client:
        self._require("supabase", "supabase client")
        return self._client

    @property
    def engine(self):
        self._require("postgresql", "engine")
        return self._engine

    @property
    def db_type(self) -> Backend:
        if self._backend is None:
            self.initialize()
        return self._backend

# Singleton instance
db = DatabaseConnection()
