# inventory_intelligence/db/__init__.py
from contextlib import contextmanager

from .connection import DatabaseConnection, db
from .interface import DatabaseInterface, SQLAlchemyInterface, SupabaseInterface

from inventory_intelligence.exceptions import DatabaseError

def initialize(connection_string=None, create_tables=False):
    """Initialize database connection and optionally create tables."""
    db.initialize(connection_string)
    if create_tables:
        create_all_tables()

@contextmanager
def interface_scope():
    """Yield a DatabaseInterface for the configured backend.

    For SQLAlchemy connections the interface is bound to a session that is
    committed when the block exits cleanly and rolled back otherwise.
    """
    if db.db_type == "supabase":
        yield SupabaseInterface(db.supabase)
    else:
        with db.session_scope() as session:
            yield SQLAlchemyInterface(session)

def _metadata():
    if db.db_type != "postgresql":
        raise DatabaseError("Schema management is only available through SQLAlchemy; apply migrations in Supabase")

    from inventory_intelligence.models import Base
    return Base.metadata

def create_all_tables():
    """Create every table declared in models.py."""
    _metadata().create_all(bind=db.engine)

def drop_all_tables():
    """Drop every table declared in models.py."""
    _metadata().drop_all(bind=db.engine)

__all__ = [
    'db',
    'initialize',
    'interface_scope',
    'create_all_tables',
    'drop_all_tables',
    'DatabaseConnection',
    'DatabaseInterface',
    'SQLAlchemyInterface',
    'SupabaseInterface'
]
