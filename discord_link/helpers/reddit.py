"""Calls against the Reddit API: usernames, comments and the verification post."""
import logging
from typing import Callable, Optional

import aiohttp
import arrow

from discord_link import trace_config
from discord_link.core.config import Global, get_settings
from discord_link.core.errors import RemoteCallFailed

logger = logging.getLogger(__name__)


class RedditClient:
    """Reddit OAuth client authenticated as the app's script account."""

    def __init__(self, settings_provider: Callable[[], Global] = get_settings):
        self._settings = settings_provider
        self._token: Optional[str] = None
        self._token_expires_at: Optional[arrow.Arrow] = None

    async def _access_token(self) -> str:
        """Fetch a bearer token with the password grant, reusing it until shortly before it expires."""
        if self._token and self._token_expires_at and arrow.utcnow() < self._token_expires_at:
            return self._token

        reddit = self._settings().reddit
        auth = aiohttp.BasicAuth(reddit.CLIENT_ID, reddit.CLIENT_SECRET.get_secret_value())
        data = {
            "grant_type": "password",
            "username": reddit.USERNAME,
            "password": reddit.PASSWORD.get_secret_value(),
        }
        async with aiohttp.ClientSession(
            headers={"User-Agent": reddit.USER_AGENT}, trace_configs=[trace_config]
        ) as session:
            async with session.post(reddit.AUTH_URL, data=data, auth=auth) as r:
                body = await r.json() if r.ok else {}
                if "access_token" not in body:
                    logger.error(f"Could not authenticate against Reddit: {r.status}.")
                    raise RemoteCallFailed("Failed to authenticate with Reddit", operation="reddit.auth", status=r.status)

        self._token = body["access_token"]
        self._token_expires_at = arrow.utcnow().shift(seconds=int(body.get("expires_in", 3600)) - 60)
        return self._token

    async def _session(self) -> aiohttp.ClientSession:
        token = await self._access_token()
        return aiohttp.ClientSession(
            headers={"Authorization": f"Bearer {token}", "User-Agent": self._settings().reddit.USER_AGENT},
            trace_configs=[trace_config],
        )

    async def _post_json_api(self, path: str, data: dict, operation: str) -> dict:
        """POST to an `api_type=json` endpoint and unwrap the `json.data` envelope."""
        url = f"{self._settings().reddit.API_URL}/{path}"
        async with await self._session() as session:
            async with session.post(url, data={"api_type": "json", **data}) as r:
                if not r.ok:
                    logger.error(f"Non-OK HTTP status code returned from {operation}: {r.status}.")
                    raise RemoteCallFailed(f"Reddit call failed: {path}", operation=operation, status=r.status)
                body = await r.json()

        envelope = body.get("json", {})
        if envelope.get("errors"):
            logger.error(f"Reddit rejected {operation}: {envelope['errors']}")
            raise RemoteCallFailed(f"Reddit rejected {path}", operation=operation, status=r.status)
        return envelope.get("data", {})

    async def get_username(self, user_id: str) -> Optional[str]:
        """
        Look up a username by account id.

        Args:
            user_id (str): The Reddit account fullname, e.g. `t2_abc123`.

        Returns:
            Optional[str]: The username, or None if Reddit does not know the account.
        """
        url = f"{self._settings().reddit.API_URL}/api/user_data_by_account_ids"
        async with await self._session() as session:
            async with session.get(url, params={"ids": user_id}) as r:
                if r.status == 404:
                    return None
                if not r.ok:
                    logger.error(f"Non-OK HTTP status code returned from user lookup: {r.status}.")
                    raise RemoteCallFailed(
                        "Failed to look up Reddit user", operation="reddit.get_username", status=r.status, user_id=user_id
                    )
                body = await r.json()

        return (body.get(user_id) or {}).get("name")

    async def submit_comment(self, thing_id: str, text: str) -> str:
        """Reply to a post or comment. Returns the fullname of the new comment."""
        data = await self._post_json_api("api/comment", {"thing_id": thing_id, "text": text}, "reddit.submit_comment")
        things = data.get("things") or [{}]
        return things[0].get("data", {}).get("name")

    async def submit_post(self, subreddit: str, title: str, text: str) -> str:
        """Create a self post. Returns the fullname of the new post."""
        data = await self._post_json_api(
            "api/submit", {"sr": subreddit, "kind": "self", "title": title, "text": text}, "reddit.submit_post"
        )
        return data.get("name")
