# flake8: noqa: D101
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class UserRecord(Base):
    """
    A key/value row holding the JSON link record of one Reddit user.

    Attributes:
        key (str): The Reddit user id, e.g. `t2_abc123` (primary key).
        value (str): The JSON encoded record, see `discord_link.database.schemas.user_record`.
    """
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
