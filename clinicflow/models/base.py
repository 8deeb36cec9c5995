# clinicflow/models/base.py
from sqlalchemy import Enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    Every department table (schedules, appointments, check-ups,
    laboratory, pharmacy) inherits from this class.
    """

    pass


def str_enum(enum_cls, name: str) -> Enum:
    """
    Column type for a ``str`` enum stored by *value* ("In Progress",
    "Canceled", ...) as a VARCHAR, so the same schema runs on
    PostgreSQL and SQLite.
    """
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )
