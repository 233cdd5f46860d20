from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


# Shared properties
class UserRecordBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    discord_username: Optional[str] = None
    discord_id: Optional[str] = None
    discord_message_id: Optional[str] = None
    comment_id: Optional[str] = None
    verification_status: bool = False
    roles: list[str]

    @model_validator(mode="after")
    def check_verified_has_discord_id(self) -> "UserRecordBase":
        """A verified link must point at a Discord account."""
        if self.verification_status and not self.discord_id:
            raise ValueError("A verified record must have a discordId")
        return self


# Properties stored in the key/value table
class UserRecord(UserRecordBase):
    verification_code: Optional[str] = None

    def safe(self) -> "SafeUserRecord":
        return SafeUserRecord.model_validate(self.model_dump(exclude={"verification_code"}))


# Properties to return to client. Unknown keys, the verification code included, are dropped.
class SafeUserRecord(UserRecordBase):
    pass
