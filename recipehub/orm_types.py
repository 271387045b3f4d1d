# recipehub/orm_types.py
from sqlalchemy.types import TypeDecorator, JSON
from sqlalchemy.dialects.postgresql import JSONB


class JSONDocument(TypeDecorator):
    """Platform-independent JSON column.

    - PostgreSQL: JSONB
    - SQLite: JSON (stored as TEXT)

    `None` is written as SQL NULL; lists and dicts are stored as-is.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


class JSONList(JSONDocument):
    """JSON column that always reads back as a list."""
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return []
        return list(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return []
        return list(value)
