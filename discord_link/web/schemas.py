from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from discord_link.flow import FlowResult, LinkState, RoleSelection


class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LinkRequest(RequestBody):
    discord_username: str
    reddit_username: Optional[str] = None
    selection: RoleSelection = RoleSelection()


class CodeRequest(RequestBody):
    code: str
    reddit_username: Optional[str] = None
    selection: RoleSelection = RoleSelection()
    post_id: Optional[str] = None


class UpdateRequest(RequestBody):
    selection: RoleSelection = RoleSelection()


class CreatePostRequest(RequestBody):
    subreddit: str
    title: Optional[str] = None


class PostView(FlowResult):
    """A `FlowResult` plus the screen the post should show."""

    screen: str
    server_name: str = ""

    @classmethod
    def from_result(cls, result: FlowResult, server_name: str = "") -> "PostView":
        screens = {
            LinkState.UNLINKED: "selection",
            LinkState.CODE_SENT: "code",
            LinkState.VERIFIED: "verified",
        }
        return cls(**dict(result), screen=screens[result.state], server_name=server_name)


class CreatedPost(RequestBody):
    post_id: str
    message: str
