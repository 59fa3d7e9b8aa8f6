"""SQLAlchemy declarative base for all models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all taxonomy ORM models.
    Every model module must be imported before metadata.create_all().
    """
    pass
