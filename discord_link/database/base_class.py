import re

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, declared_attr

# Constraint names stay stable between MariaDB and the sqlite test database.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base. A model's table is named after its class in snake_case, `UserRecord` -> `user_record`."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # noinspection PyMethodParameters
    @declared_attr.directive
    def __tablename__(cls) -> str:  # noqa: N805
        return re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()
