"""Base DAO abstract class."""

from abc import ABC
from typing import Generic, TypeVar

from jobrelay.database import Database

# Type variable for Pydantic domain models
T = TypeVar("T")


class BaseDAO(ABC, Generic[T]):
    """Abstract base class for Data Access Objects.

    DAOs own all database access and return Pydantic domain models, never
    SQLAlchemy rows. Each public method is one unit of work opened through
    ``Database.session()``.
    """

    def __init__(self, database: Database):
        self._db = database

    @property
    def db(self) -> Database:
        """Get the database instance."""
        return self._db
