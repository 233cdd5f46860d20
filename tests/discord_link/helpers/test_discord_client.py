import re

import pytest
from aioresponses import CallbackResult, aioresponses
from yarl import URL

from discord_link.core.errors import ConfigMissing, RemoteCallFailed
from discord_link.helpers.discord import RoleMutation


def roles_url(settings, member_id: str, role_id: str) -> str:
    return f"{settings.discord.API_URL}/guilds/{settings.discord.SERVER_ID}/members/{member_id}/roles/{role_id}"


def search_pattern(settings) -> re.Pattern:
    return re.compile(
        rf"^{re.escape(settings.discord.API_URL)}/guilds/{settings.discord.SERVER_ID}/members/search\?.*$"
    )


class TestResolveMemberId:
    @pytest.mark.asyncio
    async def test_case_insensitive_exact_match(self, discord_client, settings):
        with aioresponses() as m:
            m.get(
                search_pattern(settings),
                payload=[
                    {"user": {"id": "111111111111111111", "username": "Foo"}},
                    {"user": {"id": "222222222222222222", "username": "bar"}},
                ],
            )
            assert await discord_client.resolve_member_id("BAR") == "222222222222222222"

    @pytest.mark.asyncio
    async def test_prefix_match_is_not_a_match(self, discord_client, settings):
        with aioresponses() as m:
            m.get(search_pattern(settings), payload=[{"user": {"id": "111111111111111111", "username": "barbara"}}])
            assert await discord_client.resolve_member_id("bar") is None

    @pytest.mark.asyncio
    async def test_empty_result(self, discord_client, settings):
        with aioresponses() as m:
            m.get(search_pattern(settings), payload=[])
            assert await discord_client.resolve_member_id("bar") is None

    @pytest.mark.asyncio
    async def test_search_failure_is_not_raised(self, discord_client, settings):
        with aioresponses() as m:
            m.get(search_pattern(settings), status=500)
            assert await discord_client.resolve_member_id("bar") is None

    @pytest.mark.asyncio
    async def test_sends_query_and_limit(self, discord_client, settings):
        with aioresponses() as m:
            m.get(search_pattern(settings), payload=[])
            await discord_client.resolve_member_id("bar")

            (method, url), = m.requests.keys()
            assert method == "GET"
            assert url.query["query"] == "bar"
            assert url.query["limit"] == str(settings.discord.SEARCH_LIMIT)

    @pytest.mark.asyncio
    async def test_missing_server_id_is_not_a_match(self, discord_client, settings):
        settings.discord.SERVER_ID = None
        with aioresponses() as m:
            assert await discord_client.resolve_member_id("bar") is None

            assert not m.requests


class TestDirectMessages:
    @pytest.mark.asyncio
    async def test_send_verification_code(self, discord_client, settings, member_id):
        api = settings.discord.API_URL
        with aioresponses() as m:
            m.post(f"{api}/users/@me/channels", payload={"id": "555"})
            m.post(f"{api}/channels/555/messages", payload={"id": "777"})

            message_id = await discord_client.send_verification_code("spez", member_id, "abc123")

            assert message_id == "777"
            channel_call = m.requests[("POST", URL(f"{api}/users/@me/channels"))][0]
            assert channel_call.kwargs["json"] == {"recipient_id": member_id}

            message_call = m.requests[("POST", URL(f"{api}/channels/555/messages"))][0]
            payload = message_call.kwargs["json"]
            assert payload["content"] == f"Attempting to verify u/spez as <@{member_id}>. Your code is abc123"
            assert payload["allowed_mentions"] == {"parse": ["users"]}

    @pytest.mark.asyncio
    async def test_send_confirmation(self, discord_client, settings, member_id):
        api = settings.discord.API_URL
        with aioresponses() as m:
            m.post(f"{api}/users/@me/channels", payload={"id": "555"})
            m.post(f"{api}/channels/555/messages", payload={"id": "778"})

            assert await discord_client.send_confirmation(member_id, "spez") is None

            message_call = m.requests[("POST", URL(f"{api}/channels/555/messages"))][0]
            assert message_call.kwargs["json"]["content"] == "Verified as u/spez!"

    @pytest.mark.asyncio
    async def test_dm_channel_failure(self, discord_client, settings, member_id):
        with aioresponses() as m:
            m.post(f"{settings.discord.API_URL}/users/@me/channels", status=403)

            with pytest.raises(RemoteCallFailed) as exc_info:
                await discord_client.send_verification_code("spez", member_id, "abc123")

            assert exc_info.value.status == 403
            assert exc_info.value.operation == "discord.resolve_direct_message_channel"
            assert exc_info.value.user_id == member_id

    @pytest.mark.asyncio
    async def test_message_failure(self, discord_client, settings, member_id):
        api = settings.discord.API_URL
        with aioresponses() as m:
            m.post(f"{api}/users/@me/channels", payload={"id": "555"})
            m.post(f"{api}/channels/555/messages", status=400)

            with pytest.raises(RemoteCallFailed) as exc_info:
                await discord_client.send_confirmation(member_id, "spez")

            assert exc_info.value.status == 400

    @pytest.mark.asyncio
    async def test_missing_token(self, discord_client, settings, member_id):
        settings.discord.TOKEN = None
        with pytest.raises(ConfigMissing) as exc_info:
            await discord_client.resolve_direct_message_channel(member_id)

        assert exc_info.value.fields == ["DISCORD_TOKEN"]


class TestRoles:
    @pytest.mark.asyncio
    async def test_assign_roles_in_order(self, discord_client, settings, member_id):
        role_ids = [settings.roles.MODERATOR, settings.roles.DEVELOPER]
        with aioresponses() as m:
            for role_id in role_ids:
                m.put(roles_url(settings, member_id, role_id), status=204)

            mutation = await discord_client.assign_roles(member_id, role_ids)

        assert mutation == RoleMutation(granted=role_ids)
        assert mutation.succeeded

    @pytest.mark.asyncio
    async def test_assign_roles_stops_at_first_failure(self, discord_client, settings, member_id):
        role_ids = list(settings.category_roles().values())
        with aioresponses() as m:
            m.put(roles_url(settings, member_id, role_ids[0]), status=204)
            m.put(roles_url(settings, member_id, role_ids[1]), status=204)
            m.put(roles_url(settings, member_id, role_ids[2]), status=500)
            m.put(roles_url(settings, member_id, role_ids[3]), status=204)

            with pytest.raises(RemoteCallFailed) as exc_info:
                await discord_client.assign_roles(member_id, role_ids)

            assert ("PUT", URL(roles_url(settings, member_id, role_ids[3]))) not in m.requests

        mutation = exc_info.value.mutation
        assert mutation.granted == role_ids[:2]
        assert mutation.failed == role_ids[2]
        assert not mutation.succeeded
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_assign_roles_requires_config(self, discord_client, settings, member_id):
        settings.roles.OFFICE_HOURS = None
        settings.discord.WEBHOOK = None
        with aioresponses() as m:
            with pytest.raises(ConfigMissing) as exc_info:
                await discord_client.assign_roles(member_id, [settings.roles.MODERATOR])

            assert not m.requests

        assert exc_info.value.fields == ["DISCORD_WEBHOOK", "ROLE_OFFICE_HOURS"]
        assert exc_info.value.operation == "discord.assign_roles"

    @pytest.mark.asyncio
    async def test_replace_roles_revokes_every_category_first(self, discord_client, settings, member_id):
        categories = list(settings.category_roles().values())
        new_roles = [settings.roles.ANNOUNCEMENTS]
        with aioresponses() as m:
            for role_id in categories:
                m.delete(roles_url(settings, member_id, role_id), status=204)
            m.put(roles_url(settings, member_id, settings.roles.ANNOUNCEMENTS), status=204)

            mutation = await discord_client.replace_roles(member_id, new_roles)

        assert mutation.revoked == categories
        assert mutation.granted == new_roles

    @pytest.mark.asyncio
    async def test_replace_roles_twice_leaves_target_set(self, discord_client, settings, member_id):
        held = {settings.roles.DEVELOPER, "999999999999999999"}
        target = [settings.roles.MODERATOR, settings.roles.OFFICE_HOURS]
        pattern = re.compile(rf".*/members/{member_id}/roles/(\d+)$")

        def grant(url, **kwargs):
            held.add(url.path.rsplit("/", 1)[-1])
            return CallbackResult(status=204)

        def revoke(url, **kwargs):
            held.discard(url.path.rsplit("/", 1)[-1])
            return CallbackResult(status=204)

        with aioresponses() as m:
            m.put(pattern, callback=grant, repeat=True)
            m.delete(pattern, callback=revoke, repeat=True)

            await discord_client.replace_roles(member_id, target)
            first = set(held)
            await discord_client.replace_roles(member_id, target)

        # Roles outside the four categories are left alone.
        assert first == held == {*target, "999999999999999999"}

    @pytest.mark.asyncio
    async def test_replace_roles_revoke_failure_aborts(self, discord_client, settings, member_id):
        categories = list(settings.category_roles().values())
        with aioresponses() as m:
            m.delete(roles_url(settings, member_id, categories[0]), status=403)

            with pytest.raises(RemoteCallFailed) as exc_info:
                await discord_client.replace_roles(member_id, [settings.roles.DEVELOPER])

            assert len(m.requests) == 1

        assert exc_info.value.mutation == RoleMutation(failed=categories[0])

    @pytest.mark.asyncio
    async def test_remove_roles(self, discord_client, settings, member_id):
        role_ids = [settings.roles.DEVELOPER]
        with aioresponses() as m:
            m.delete(roles_url(settings, member_id, settings.roles.DEVELOPER), status=204)

            mutation = await discord_client.remove_roles(member_id, role_ids)

            assert len(m.requests) == 1

        assert mutation.revoked == role_ids
        assert mutation.granted == []
