"""Shared base classes for persisted shapes.

``Base`` is the SQLAlchemy declarative base for the ``sql`` backend's
tables.  ``CamelModel`` is the Pydantic base for every JSON document kept
in the keyed store: attributes are snake_case in Python and in storage,
and camelCase on the wire (FastAPI serialises by alias).
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models in interview_store."""

    pass


class CamelModel(BaseModel):
    """Pydantic base that accepts both field names and camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
