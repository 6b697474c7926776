"""Shared declarative base for all SQLAlchemy ORM models."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# stable constraint names so migrations can target them on PostgreSQL
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class imported by all model modules to register metadata."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
