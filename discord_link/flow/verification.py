"""
The link flow between a Reddit account and a Discord member.

A user moves from unlinked, to code sent, to verified. Every handler loads the stored record, talks to Discord and
Reddit in sequence, then writes the record back. Nothing is rolled back when a remote call fails half way through.
"""
import logging
import random
from typing import Callable, Optional

from discord_link.core import constants
from discord_link.core.config import Global, get_settings
from discord_link.core.errors import ErrorKind, RecordNotFound, ValidationFailed
from discord_link.database.crud import CRUDUserRecord
from discord_link.database.schemas.user_record import UserRecord
from discord_link.flow.types import FlowResult, LinkState, RoleSelection
from discord_link.helpers.discord import DiscordClient
from discord_link.helpers.reddit import RedditClient
from discord_link.helpers.webhook import webhook_call

logger = logging.getLogger(__name__)


def generate_code() -> str:
    """A short lowercase base 36 code. Not a secret, only proof the user can read the DM."""
    return "".join(random.choices(constants.verification.alphabet, k=constants.verification.code_length))


class VerificationFlow:
    """Runs the link, verify, update and unlink actions for one Reddit user at a time."""

    def __init__(
        self,
        discord: DiscordClient,
        reddit: RedditClient,
        store: CRUDUserRecord,
        settings_provider: Callable[[], Global] = get_settings,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.discord = discord
        self.reddit = reddit
        self.store = store
        self._settings = settings_provider
        self._code_factory = code_factory

    async def load(self, user_id: str) -> FlowResult:
        """Current state of a user, with the role selection preset from the roles they hold."""
        record = await self.store.get(user_id)
        selection = RoleSelection.from_roles(record.roles, self._settings()) if record else RoleSelection()
        return FlowResult(state=FlowResult.state_of(record), record=record, selection=selection)

    async def request_code(
        self, user_id: str, reddit_username: str, discord_username: str, selection: RoleSelection
    ) -> FlowResult:
        """
        Send a verification code to the Discord member named `discord_username`.

        Args:
            user_id (str): The Reddit user id.
            reddit_username (str): The Reddit username, quoted in the DM.
            discord_username (str): The Discord username the user claims.
            selection (RoleSelection): The role categories ticked when the form was submitted.

        Asking again while a code is pending replaces the pending code. A verified user has to unlink first.

        Returns:
            FlowResult: `CODE_SENT` with the new record, or `UNLINKED` when no member has that name.
        """
        existing = await self.store.get(user_id)
        if existing is not None and existing.verification_status:
            logger.info(f"Reddit user {user_id} asked for a code while linked to {existing.discord_username}")
            return FlowResult(
                state=LinkState.VERIFIED,
                record=existing,
                selection=selection,
                message=constants.messages.already_linked,
                error=ErrorKind.INVALID_STATE,
            )

        discord_username = (discord_username or "").strip()
        if not discord_username:
            return FlowResult(
                state=LinkState.UNLINKED, selection=selection, message=constants.messages.username_missing
            )

        roles = selection.role_ids(self._settings())

        discord_id = await self.discord.resolve_member_id(discord_username)
        if not discord_id:
            logger.info(f"Reddit user {user_id} asked to link unknown Discord user {discord_username}")
            return FlowResult(
                state=LinkState.UNLINKED,
                selection=selection,
                message=constants.messages.member_not_found,
                error=ErrorKind.MEMBER_NOT_FOUND,
            )

        code = self._code_factory()
        message_id = await self.discord.send_verification_code(reddit_username, discord_id, code)
        record = await self.store.set(
            user_id,
            UserRecord(
                discord_username=discord_username,
                discord_id=discord_id,
                discord_message_id=message_id,
                verification_code=code,
                roles=roles,
                verification_status=False,
            ),
        )
        logger.info(f"Sent verification code to {discord_username} ({discord_id}) for Reddit user {user_id}")
        return FlowResult(
            state=LinkState.CODE_SENT, record=record, selection=selection, message=constants.messages.code_sent
        )

    async def _load_linked(self, user_id: str, operation: str) -> UserRecord:
        record = await self.store.get_full(user_id)
        if record is None:
            raise RecordNotFound("No Discord link in progress", operation=operation, user_id=user_id)
        if not record.discord_id:
            raise ValidationFailed("Stored record has no discordId", operation=operation, user_id=user_id)
        return record

    async def submit_code(
        self,
        user_id: str,
        reddit_username: str,
        code: str,
        selection: RoleSelection,
        post_id: Optional[str] = None,
    ) -> FlowResult:
        """
        Check `code` against the stored one and, on a match, grant the selected roles.

        Codes are compared exactly, case included. The record is only marked verified once every role was granted.

        Raises:
            RecordNotFound: If the user never asked for a code.
            RemoteCallFailed: If Discord rejects a call. Roles granted before the failure stay granted.
        """
        record = await self._load_linked(user_id, "flow.submit_code")
        if record.verification_code is None or code != record.verification_code:
            logger.info(f"Reddit user {user_id} entered an invalid verification code")
            return FlowResult(
                state=FlowResult.state_of(record),
                record=record.safe(),
                selection=selection,
                message=constants.messages.invalid_code,
            )

        settings = self._settings()
        roles = selection.role_ids(settings)

        await self.discord.send_confirmation(record.discord_id, reddit_username)
        await self.discord.assign_roles(record.discord_id, roles)

        comment_id = record.comment_id
        if settings.ANNOUNCE_VERIFICATIONS and post_id:
            comment_id = await self.reddit.submit_comment(
                post_id,
                constants.templates.verified_comment.format(
                    reddit_username=reddit_username, discord_username=record.discord_username
                ),
            )

        if settings.discord.WEBHOOK:
            await webhook_call(
                settings.discord.WEBHOOK,
                {
                    "content": constants.templates.webhook_notice.format(
                        reddit_username=reddit_username, member_id=record.discord_id
                    ),
                    "allowed_mentions": {"parse": ["users"]},
                },
            )

        verified = await self.store.set(
            user_id,
            record.model_copy(
                update={
                    "roles": roles,
                    "verification_status": True,
                    "verification_code": None,
                    "comment_id": comment_id,
                }
            ),
        )
        logger.info(f"Reddit user {user_id} verified as {record.discord_username} ({record.discord_id})")
        return FlowResult(
            state=LinkState.VERIFIED, record=verified, selection=selection, message=constants.messages.verified
        )

    async def update_roles(self, user_id: str, selection: RoleSelection) -> FlowResult:
        """Swap the member's category roles for the current selection. Only a verified user can do this."""
        record = await self._load_linked(user_id, "flow.update_roles")
        if not record.verification_status:
            logger.info(f"Reddit user {user_id} tried to change roles before entering the code")
            return FlowResult(
                state=LinkState.CODE_SENT,
                record=record.safe(),
                selection=selection,
                message=constants.messages.not_verified,
                error=ErrorKind.INVALID_STATE,
            )

        roles = selection.role_ids(self._settings())

        await self.discord.replace_roles(record.discord_id, roles)

        updated = await self.store.set(
            user_id, record.model_copy(update={"roles": roles, "verification_status": True})
        )
        logger.info(f"Updated roles of Reddit user {user_id} to {roles}")
        return FlowResult(
            state=LinkState.VERIFIED, record=updated, selection=selection, message=constants.messages.roles_updated
        )

    async def unlink(self, user_id: str) -> FlowResult:
        """Revoke the roles, post the revocation notice and forget the link. Unlinking twice is a no-op."""
        record = await self.store.get_full(user_id)
        if record is None:
            logger.debug(f"Nothing to unlink for Reddit user {user_id}")
            return FlowResult(state=LinkState.UNLINKED, message=constants.messages.unlinked)

        if record.discord_id:
            await self.discord.remove_roles(record.discord_id, record.roles)
        if record.comment_id:
            await self.reddit.submit_comment(record.comment_id, constants.templates.revoked_comment)

        await self.store.delete(user_id)
        logger.info(f"Unlinked Reddit user {user_id} from {record.discord_username}")
        return FlowResult(state=LinkState.UNLINKED, message=constants.messages.unlinked)
