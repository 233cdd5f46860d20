import json
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discord_link.core.errors import ValidationFailed
from discord_link.database import models
from discord_link.database.schemas.user_record import SafeUserRecord, UserRecord

logger = logging.getLogger(__name__)


def parse_record(raw: str, user_id: str | None = None) -> UserRecord:
    """Validate a stored JSON value on its way out of the store."""
    try:
        return UserRecord.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error(f"Stored record for {user_id} is malformed", exc_info=exc)
        raise ValidationFailed(
            "Stored user record does not match the schema", operation="store.get", user_id=user_id
        ) from exc


def dump_record(record: UserRecord | dict, user_id: str | None = None) -> tuple[UserRecord, str]:
    """Validate a record on its way into the store, applying defaults. Returns the record and its JSON value."""
    try:
        validated = UserRecord.model_validate(
            record.model_dump() if isinstance(record, UserRecord) else record
        )
    except ValidationError as exc:
        logger.warning(f"Refusing to store invalid record for {user_id}: {exc.errors()}")
        raise ValidationFailed(
            "User record does not match the schema", operation="store.set", user_id=user_id
        ) from exc
    return validated, validated.model_dump_json(by_alias=True, exclude_none=True)


class CRUDUserRecord:
    """User record operations against the key/value table, keyed by Reddit user id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_full(self, user_id: str) -> Optional[UserRecord]:
        """Read a record including its verification code."""
        async with self.session_factory() as db:
            row = await db.get(models.UserRecord, user_id)
        if row is None:
            return None
        return parse_record(row.value, user_id)

    async def get(self, user_id: str) -> Optional[SafeUserRecord]:
        record = await self.get_full(user_id)
        return record.safe() if record else None

    async def set(self, user_id: str, record: UserRecord | dict) -> SafeUserRecord:
        validated, value = dump_record(record, user_id)
        async with self.session_factory() as db:
            await db.merge(models.UserRecord(key=user_id, value=value))
            await db.commit()
        logger.debug(f"Stored record for {user_id}")
        return validated.safe()

    async def delete(self, user_id: str) -> None:
        """Remove the record. Deleting a missing record is not an error."""
        async with self.session_factory() as db:
            await db.execute(delete(models.UserRecord).where(models.UserRecord.key == user_id))
            await db.commit()
        logger.debug(f"Deleted record for {user_id}")
