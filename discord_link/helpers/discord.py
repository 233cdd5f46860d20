"""Calls against the Discord REST API on behalf of the verification flow."""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import aiohttp

from discord_link import trace_config
from discord_link.core import constants
from discord_link.core.config import Global, get_settings
from discord_link.core.errors import ConfigMissing, RemoteCallFailed

logger = logging.getLogger(__name__)


@dataclass
class RoleMutation:
    """
    Progress of a sequential role mutation.

    Attributes:
        granted (list[str]): Role ids successfully added, in call order.
        revoked (list[str]): Role ids successfully removed, in call order.
        failed (str | None): The role id whose call failed. Nothing after it was attempted.
    """

    granted: list[str] = field(default_factory=list)
    revoked: list[str] = field(default_factory=list)
    failed: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.failed is None


class DiscordClient:
    """
    A thin client for the handful of Discord endpoints the verification flow needs.

    The bot token and ids are read from the settings provider on every call, so a settings reload is picked up
    without recreating the client.
    """

    def __init__(self, settings_provider: Callable[[], Global] = get_settings):
        self._settings = settings_provider

    def _endpoint(self, path: str) -> str:
        return f"{self._settings().discord.API_URL}/{path}"

    def _session(self, operation: str) -> aiohttp.ClientSession:
        """Get a session authenticated with the bot token."""
        token = self._settings().discord.TOKEN
        if not token:
            raise ConfigMissing(["DISCORD_TOKEN"], operation=operation)
        return aiohttp.ClientSession(
            headers={
                "Authorization": f"Bot {token.get_secret_value()}",
                "Content-Type": "application/json",
            },
            trace_configs=[trace_config],
        )

    async def resolve_direct_message_channel(self, member_id: str) -> str:
        """
        Open the DM channel between the bot and a member, or get the existing one.

        Args:
            member_id (str): The Discord id of the member.

        Returns:
            str: The DM channel id.

        Raises:
            RemoteCallFailed: If Discord refuses to open the channel.
        """
        operation = "discord.resolve_direct_message_channel"
        async with self._session(operation) as session:
            async with session.post(self._endpoint("users/@me/channels"), json={"recipient_id": member_id}) as r:
                if not r.ok:
                    logger.error(f"Non-OK HTTP status code returned from DM channel creation: {r.status}.")
                    raise RemoteCallFailed(
                        "Failed to create DM channel", operation=operation, status=r.status, user_id=member_id
                    )
                body = await r.json()

        return str(body["id"])

    async def _send_direct_message(self, member_id: str, content: str, operation: str) -> dict:
        channel_id = await self.resolve_direct_message_channel(member_id)
        payload = {
            "content": content,
            "allowed_mentions": {"parse": ["users"]},
        }

        async with self._session(operation) as session:
            async with session.post(self._endpoint(f"channels/{channel_id}/messages"), json=payload) as r:
                if not r.ok:
                    logger.error(f"Non-OK HTTP status code returned from message send: {r.status}.")
                    raise RemoteCallFailed(
                        "Failed to send direct message", operation=operation, status=r.status, user_id=member_id
                    )
                return await r.json()

    async def send_confirmation(self, member_id: str, display_name: str) -> None:
        """Tell the member by DM that their Reddit account is now linked."""
        content = constants.templates.confirmation.format(reddit_username=display_name)
        await self._send_direct_message(member_id, content, "discord.send_confirmation")

    async def send_verification_code(self, display_name: str, member_id: str, code: str) -> str:
        """
        DM the verification code to the member.

        Args:
            display_name (str): The Reddit username asking for the link.
            member_id (str): The Discord id of the member.
            code (str): The verification code.

        Returns:
            str: The id of the message carrying the code.
        """
        content = constants.templates.verification_code.format(
            reddit_username=display_name, member_id=member_id, code=code
        )
        body = await self._send_direct_message(member_id, content, "discord.send_verification_code")
        return str(body["id"])

    def _require_role_config(self, operation: str) -> Global:
        settings = self._settings()
        missing = settings.missing_role_config()
        if missing:
            logger.error(f"Refusing {operation}, missing settings: {', '.join(missing)}")
            raise ConfigMissing(missing, operation=operation)
        return settings

    async def _mutate_roles(
        self, member_id: str, *, revoke: Sequence[str] = (), grant: Sequence[str] = (), operation: str
    ) -> RoleMutation:
        """Revoke then grant roles one call at a time, stopping at the first failure."""
        settings = self._require_role_config(operation)
        mutation = RoleMutation()
        steps = [("DELETE", role_id) for role_id in revoke] + [("PUT", role_id) for role_id in grant]

        async with self._session(operation) as session:
            for method, role_id in steps:
                url = self._endpoint(f"guilds/{settings.discord.SERVER_ID}/members/{member_id}/roles/{role_id}")
                async with session.request(method, url) as r:
                    if not r.ok:
                        mutation.failed = role_id
                        action = "remove" if method == "DELETE" else "assign"
                        logger.error(
                            f"Failed to {action} role {role_id} for member {member_id}: {r.status}. "
                            f"Granted so far: {mutation.granted}, revoked so far: {mutation.revoked}."
                        )
                        raise RemoteCallFailed(
                            f"Failed to {action} role",
                            operation=operation,
                            status=r.status,
                            user_id=member_id,
                            mutation=mutation,
                        )
                if method == "DELETE":
                    mutation.revoked.append(role_id)
                else:
                    mutation.granted.append(role_id)

        return mutation

    async def assign_roles(self, member_id: str, role_ids: Sequence[str]) -> RoleMutation:
        """Grant each role in order. Roles granted before a failure stay granted."""
        return await self._mutate_roles(member_id, grant=role_ids, operation="discord.assign_roles")

    async def replace_roles(self, member_id: str, new_role_ids: Sequence[str]) -> RoleMutation:
        """
        Revoke every category role, then grant `new_role_ids`.

        Removing a role the member does not hold succeeds on Discord, so the category roles are revoked without
        checking which ones the member currently has.
        """
        operation = "discord.replace_roles"
        settings = self._require_role_config(operation)
        category_roles = list(settings.category_roles().values())
        return await self._mutate_roles(member_id, revoke=category_roles, grant=new_role_ids, operation=operation)

    async def remove_roles(self, member_id: str, role_ids: Sequence[str]) -> RoleMutation:
        return await self._mutate_roles(member_id, revoke=role_ids, operation="discord.remove_roles")

    async def resolve_member_id(self, display_name: str) -> Optional[str]:
        """
        Find the id of the guild member whose username matches `display_name`, ignoring case.

        Search failures are logged and treated as no match.

        Args:
            display_name (str): The Discord username to look for.

        Returns:
            Optional[str]: The member id, or None when no member matches.
        """
        operation = "discord.resolve_member_id"
        settings = self._settings()
        if not settings.discord.SERVER_ID:
            logger.error("Cannot search members, DISCORD_SERVER_ID is not set.")
            return None

        url = self._endpoint(f"guilds/{settings.discord.SERVER_ID}/members/search")
        params = {"query": display_name, "limit": settings.discord.SEARCH_LIMIT}

        async with self._session(operation) as session:
            async with session.get(url, params=params) as r:
                if not r.ok:
                    logger.error(f"Failed to fetch discord user id from username: {r.status}.")
                    return None
                body = await r.json()

        if not body:
            logger.warning(f"Discord user ID not found in response for {display_name}.")
            return None

        wanted = display_name.lower()
        for candidate in body:
            user = candidate.get("user") or {}
            logger.debug(f"Checking member {user.get('id')} ({user.get('username')})")
            if (user.get("username") or "").lower() == wanted:
                return str(user["id"])

        logger.info(f"No member named {display_name} among {len(body)} search results.")
        return None
