# inventory_intelligence/db/interface.py
import enum
from abc import ABC, abstractmethod
from contextlib import nullcontext
from datetime import date, datetime
from typing import Dict, Any, Optional, List

from sqlalchemy import select, update as sql_update, insert as sql_insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from inventory_intelligence.models import Base, generate_uuid
from inventory_intelligence.exceptions import DatabaseError

# PostgREST default max-rows
PAGE_SIZE = 1000

class DatabaseInterface(ABC):
    """Abstract row-level interface shared by the SQLAlchemy and Supabase backends.

    Rows are plain dictionaries keyed by column name. Filter values that are
    lists match any of their members; ``None`` matches NULL.
    """

    @abstractmethod
    def select(
        self,
        table_name: str,
        filters: Dict[str, Any] = None,
        gte: Dict[str, Any] = None,
        lte: Dict[str, Any] = None,
        order_by: str = None,
        descending: bool = False,
        limit: int = None
    ) -> List[Dict[str, Any]]:
        """Query rows from a table."""
        pass

    @abstractmethod
    def insert(self, table_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it."""
        pass

    @abstractmethod
    def update(self, table_name: str, data: Dict[str, Any], filters: Dict[str, Any]) -> int:
        """Update rows matching filters, returning the number updated."""
        pass

    @abstractmethod
    def upsert(self, table_name: str, data: Dict[str, Any], on_conflict: List[str]) -> int:
        """Insert a row or update the row that conflicts on the given key columns."""
        pass


def _serialize_value(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize_value(v) for k, v in value.items()}
    return value


def _normalize_enums(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in data.items()}


class SupabaseInterface(DatabaseInterface):
    """Supabase (PostgREST) interface implementation."""

    def __init__(self, client):
        """Initialize with Supabase client."""
        self.client = client

    @staticmethod
    def _apply_filters(query, filters: Dict[str, Any] = None):
        for key, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                query = query.in_(key, [_serialize_value(v) for v in value])
            elif value is None:
                query = query.is_(key, 'null')
            else:
                query = query.eq(key, _serialize_value(value))
        return query

    def _build_query(self, table_name, filters, gte, lte, order_by, descending):
        query = self.client.table(table_name).select('*')
        query = self._apply_filters(query, filters)

        for key, value in (gte or {}).items():
            query = query.gte(key, _serialize_value(value))
        for key, value in (lte or {}).items():
            query = query.lte(key, _serialize_value(value))

        if order_by:
            query = query.order(order_by, desc=descending)
        return query

    def select(self, table_name, filters=None, gte=None, lte=None, order_by=None,
               descending=False, limit=None):
        """Query data from a table using Supabase.

        Without a limit, rows are read page by page until a short page
        comes back, since PostgREST caps each response at its max-rows.
        """
        try:
            if limit:
                query = self._build_query(table_name, filters, gte, lte, order_by, descending)
                result = query.limit(limit).execute()
                return result.data if result.data else []

            rows = []
            offset = 0
            while True:
                query = self._build_query(table_name, filters, gte, lte, order_by, descending)
                page = query.range(offset, offset + PAGE_SIZE - 1).execute().data or []
                rows.extend(page)
                if len(page) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE
        except Exception as e:
            raise DatabaseError(f"Supabase query error on {table_name}: {str(e)}")

        return rows

    def insert(self, table_name, data):
        """Insert data into a table using Supabase."""
        try:
            result = self.client.table(table_name).insert(_serialize_value(data)).execute()
        except Exception as e:
            raise DatabaseError(f"Supabase insert error on {table_name}: {str(e)}")

        return result.data[0] if result.data else {}

    def update(self, table_name, data, filters):
        """Update data in a table using Supabase."""
        try:
            query = self.client.table(table_name).update(_serialize_value(data))
            query = self._apply_filters(query, filters)
            result = query.execute()
        except Exception as e:
            raise DatabaseError(f"Supabase update error on {table_name}: {str(e)}")

        return len(result.data) if result.data else 0

    def upsert(self, table_name, data, on_conflict):
        """Upsert a row using the PostgREST on_conflict clause."""
        try:
            result = self.client.table(table_name).upsert(
                _serialize_value(data),
                on_conflict=','.join(on_conflict)
            ).execute()
        except Exception as e:
            raise DatabaseError(f"Supabase upsert error on {table_name}: {str(e)}")

        return len(result.data) if result.data else 0


class SQLAlchemyInterface(DatabaseInterface):
    """SQLAlchemy Core implementation over the tables declared in models.py."""

    def __init__(self, session: Session):
        """Initialize with a database session."""
        self.session = session

    def _table(self, table_name: str):
        table = Base.metadata.tables.get(table_name)
        if table is None:
            raise DatabaseError(f"Unknown table: {table_name}")
        return table

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def _write_scope(self):
        # A failed statement aborts the whole PostgreSQL transaction, so each
        # write runs in its own savepoint.
        if self.dialect_name == 'postgresql':
            return self.session.begin_nested()
        return nullcontext()

    def _where(self, stmt, table, filters=None):
        for key, value in (filters or {}).items():
            column = table.c[key]
            if isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_([_serialize_enum(v) for v in value]))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == _serialize_enum(value))
        return stmt

    def select(self, table_name, filters=None, gte=None, lte=None, order_by=None,
               descending=False, limit=None):
        """Query data from a table."""
        table = self._table(table_name)
        try:
            stmt = self._where(select(table), table, filters)

            for key, value in (gte or {}).items():
                stmt = stmt.where(table.c[key] >= value)
            for key, value in (lte or {}).items():
                stmt = stmt.where(table.c[key] <= value)

            if order_by:
                column = table.c[order_by]
                stmt = stmt.order_by(column.desc() if descending else column.asc())
            if limit:
                stmt = stmt.limit(limit)

            rows = self.session.execute(stmt).mappings().all()
        except Exception as e:
            raise DatabaseError(f"Query error on {table_name}: {str(e)}")

        return [dict(row) for row in rows]

    def insert(self, table_name, data):
        """Insert a row and read it back."""
        table = self._table(table_name)
        values = _normalize_enums(data)
        if 'id' in table.c and not values.get('id'):
            values['id'] = generate_uuid()

        try:
            with self._write_scope():
                self.session.execute(sql_insert(table).values(**values))
        except Exception as e:
            raise DatabaseError(f"Insert error on {table_name}: {str(e)}")

        rows = self.select(table_name, {'id': values['id']}, limit=1) if 'id' in table.c else []
        return rows[0] if rows else values

    def update(self, table_name, data, filters):
        """Update rows matching filters."""
        table = self._table(table_name)
        try:
            with self._write_scope():
                stmt = self._where(sql_update(table), table, filters).values(**_normalize_enums(data))
                result = self.session.execute(stmt)
        except Exception as e:
            raise DatabaseError(f"Update error on {table_name}: {str(e)}")

        return result.rowcount or 0

    def upsert(self, table_name, data, on_conflict):
        """Atomic INSERT ... ON CONFLICT DO UPDATE keyed on the given columns."""
        table = self._table(table_name)
        values = _normalize_enums(data)
        if 'id' in table.c and not values.get('id'):
            values['id'] = generate_uuid()

        if self.dialect_name == 'postgresql':
            stmt = postgresql.insert(table).values(**values)
        elif self.dialect_name == 'sqlite':
            stmt = sqlite.insert(table).values(**values)
        else:
            raise DatabaseError(f"Upsert is not supported for dialect {self.dialect_name}")

        update_columns = {
            key: stmt.excluded[key]
            for key in values
            if key not in on_conflict and key != 'id'
        }
        stmt = stmt.on_conflict_do_update(index_elements=on_conflict, set_=update_columns)

        try:
            with self._write_scope():
                result = self.session.execute(stmt)
        except Exception as e:
            raise DatabaseError(f"Upsert error on {table_name}: {str(e)}")

        return result.rowcount or 0


def _serialize_enum(value):
    return value.value if isinstance(value, enum.Enum) else value
