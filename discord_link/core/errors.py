"""Failure kinds raised by the Discord client, the record store and the verification flow."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from discord_link.helpers.discord import RoleMutation


class ErrorKind(Enum):
    CONFIG_MISSING = "config_missing"
    REMOTE_CALL_FAILED = "remote_call_failed"
    RECORD_NOT_FOUND = "record_not_found"
    VALIDATION_FAILED = "validation_failed"
    MEMBER_NOT_FOUND = "member_not_found"
    INVALID_STATE = "invalid_state"


class DiscordLinkError(Exception):
    """
    Base class for every error raised by the app.

    Attributes:
        kind (ErrorKind): The failure category.
        operation (str | None): The operation that failed, e.g. `discord.assign_roles`.
        status (int | None): The HTTP status returned by a remote platform, if any.
        user_id (str | None): The Reddit or Discord user the operation acted on.
    """

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        status: int | None = None,
        user_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.status = status
        self.user_id = user_id

    def __str__(self) -> str:
        context = ", ".join(
            f"{name}={value}"
            for name, value in (("operation", self.operation), ("status", self.status), ("user_id", self.user_id))
            if value is not None
        )
        return f"{self.message} ({context})" if context else self.message


class ConfigMissing(DiscordLinkError):
    kind = ErrorKind.CONFIG_MISSING

    def __init__(self, fields: Iterable[str], *, operation: str | None = None):
        self.fields = list(fields)
        super().__init__(f"Discord config missing: {', '.join(self.fields)}", operation=operation)


class RemoteCallFailed(DiscordLinkError):
    """A remote platform returned a non-success response. Earlier side effects are left in place."""

    kind = ErrorKind.REMOTE_CALL_FAILED

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        status: int | None = None,
        user_id: str | None = None,
        mutation: RoleMutation | None = None,
    ):
        super().__init__(message, operation=operation, status=status, user_id=user_id)
        self.mutation = mutation


class RecordNotFound(DiscordLinkError):
    kind = ErrorKind.RECORD_NOT_FOUND


class ValidationFailed(DiscordLinkError):
    kind = ErrorKind.VALIDATION_FAILED
