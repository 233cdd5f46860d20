from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from discord_link.core.config import Global
from discord_link.core.errors import ConfigMissing, ErrorKind
from discord_link.database.schemas.user_record import SafeUserRecord


class LinkState(Enum):
    UNLINKED = "unlinked"
    CODE_SENT = "code_sent"
    VERIFIED = "verified"


class RoleSelection(BaseModel):
    """The role categories a user ticked. Read fresh on every action, never from the stored record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    developer: bool = False
    moderator: bool = False
    office_hours: bool = False
    announcements: bool = False

    def role_ids(self, settings: Global) -> list[str]:
        """
        Map the ticked categories to configured role ids.

        Raises:
            ConfigMissing: If a ticked category has no role id configured.
        """
        selected = self.model_dump()
        roles = []
        missing = []
        for category, role_id in settings.category_roles().items():
            if not selected[category]:
                continue
            if role_id:
                roles.append(role_id)
            else:
                missing.append(f"ROLE_{category.upper()}")
        if missing:
            raise ConfigMissing(missing, operation="flow.role_ids")
        return roles

    @classmethod
    def from_roles(cls, roles: list[str], settings: Global) -> "RoleSelection":
        """Tick the categories whose configured role id is among `roles`."""
        held = set(roles)
        return cls(**{category: bool(role_id) and role_id in held for category, role_id in settings.category_roles().items()})


class FlowResult(BaseModel):
    """What the presentation layer renders after an action."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    state: LinkState
    record: Optional[SafeUserRecord] = None
    selection: RoleSelection = RoleSelection()
    message: Optional[str] = None
    error: Optional[ErrorKind] = None

    @staticmethod
    def state_of(record: Optional[SafeUserRecord]) -> LinkState:
        if record is None:
            return LinkState.UNLINKED
        return LinkState.VERIFIED if record.verification_status else LinkState.CODE_SENT
