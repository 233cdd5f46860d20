import hashlib
import hmac
import logging
from typing import Awaitable

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from hypercorn.asyncio import serve as hypercorn_serve
from hypercorn.config import Config as HypercornConfig

from discord_link.core import constants, settings
from discord_link.core.config import get_settings
from discord_link.core.errors import DiscordLinkError, RecordNotFound
from discord_link.database import crud
from discord_link.flow import FlowResult, VerificationFlow
from discord_link.helpers.discord import DiscordClient
from discord_link.helpers.reddit import RedditClient
from discord_link.metrics import completed_actions, errored_actions, metrics_app, received_actions
from discord_link.web.schemas import CodeRequest, CreatedPost, CreatePostRequest, LinkRequest, PostView, UpdateRequest

logger = logging.getLogger(__name__)

app = FastAPI()

reddit = RedditClient()
flow = VerificationFlow(DiscordClient(), reddit, crud.user_record)


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """
    HMAC SHA1 signature verification.

    Args:
        body (bytes): The raw body of the request.
        signature (str): The X-Signature header of the request.
        secret (str): The shared secret.

    Returns:
        bool: True if the signature is valid, False otherwise.
    """
    if not signature or not secret:
        return False

    digest = hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()
    return hmac.compare_digest(signature, digest)


async def signed_request(request: Request) -> None:
    """Reject requests that were not signed by the host platform."""
    body = await request.body()
    if not verify_signature(body, request.headers.get("X-Signature"), get_settings().WEB_TOKEN):
        logger.warning("Unauthorized request to %s", request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")


async def run_action(action: str, handler: Awaitable[FlowResult]) -> PostView:
    """Await a flow handler, counting it, and wrap the result for rendering."""
    logger.debug(f"Action '{action}' received.")
    received_actions.labels(action).inc()
    try:
        result = await handler
    except DiscordLinkError as exc:
        errored_actions.labels(action).inc()
        logger.error(f"Action '{action}' failed: {exc}")
        raise

    logger.debug(f"Action '{action}' completed.")
    completed_actions.labels(action).inc()
    return PostView.from_result(result, server_name=get_settings().discord.SERVER_NAME)


async def resolve_username(user_id: str, given: str | None) -> str:
    username = given or await reddit.get_username(user_id)
    if not username:
        raise HTTPException(status_code=400, detail=constants.messages.not_logged_in)
    return username


@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound) -> JSONResponse:
    """The user acted on a link that does not exist anymore; ask them to start over."""
    logger.debug("A user acted on a missing record.", exc_info=exc)
    return JSONResponse(status_code=404, content={"message": constants.messages.generic_failure})


@app.post("/posts/verification", dependencies=[Depends(signed_request)], response_model=CreatedPost)
async def create_post(body: CreatePostRequest) -> CreatedPost:
    """Moderator menu action: submit the verification post to a subreddit."""
    current = get_settings()
    received_actions.labels("create_post").inc()
    try:
        post_id = await reddit.submit_post(
            body.subreddit,
            body.title or current.reddit.POST_TITLE,
            constants.templates.post_body.format(server_name=current.discord.SERVER_NAME or "our server"),
        )
    except DiscordLinkError:
        errored_actions.labels("create_post").inc()
        raise
    completed_actions.labels("create_post").inc()
    logger.info(f"Created verification post {post_id} in r/{body.subreddit}")
    return CreatedPost(post_id=post_id, message=constants.messages.post_created)


@app.post("/verification/{user_id}", dependencies=[Depends(signed_request)], response_model=PostView)
async def render(user_id: str) -> PostView:
    return await run_action("render", flow.load(user_id))


@app.post("/verification/{user_id}/link", dependencies=[Depends(signed_request)], response_model=PostView)
async def link(user_id: str, body: LinkRequest) -> PostView:
    username = await resolve_username(user_id, body.reddit_username)
    return await run_action(
        "link", flow.request_code(user_id, username, body.discord_username, body.selection)
    )


@app.post("/verification/{user_id}/code", dependencies=[Depends(signed_request)], response_model=PostView)
async def submit_code(user_id: str, body: CodeRequest) -> PostView:
    username = await resolve_username(user_id, body.reddit_username)
    return await run_action(
        "verify", flow.submit_code(user_id, username, body.code, body.selection, post_id=body.post_id)
    )


@app.post("/verification/{user_id}/update", dependencies=[Depends(signed_request)], response_model=PostView)
async def update(user_id: str, body: UpdateRequest) -> PostView:
    return await run_action("update", flow.update_roles(user_id, body.selection))


@app.post("/verification/{user_id}/unlink", dependencies=[Depends(signed_request)], response_model=PostView)
async def unlink(user_id: str) -> PostView:
    return await run_action("unlink", flow.unlink(user_id))


app.mount("/metrics", metrics_app)

config = HypercornConfig()
config.bind = [f"0.0.0.0:{settings.WEB_PORT}"]


async def serve():
    await hypercorn_serve(app, config)
