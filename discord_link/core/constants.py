from pydantic import BaseModel


class Messages(BaseModel):
    """Texts shown to Reddit users as toasts."""

    not_logged_in: str = "Must be logged in to use this app"
    username_missing: str = "Discord username not provided"
    member_not_found: str = "User does not exist on server"
    code_sent: str = "Check your Discord DMs for your verification code"
    invalid_code: str = "Invalid verification code"
    not_verified: str = "Enter your verification code before changing roles"
    already_linked: str = "Already linked, unlink before linking another Discord account"
    verified: str = "Verified!"
    roles_updated: str = "Roles updated!"
    unlinked: str = "Unlinked"
    post_created: str = "Created post!"
    generic_failure: str = "Something went wrong, please start the verification again"


class Templates(BaseModel):
    """Message templates sent to Discord and Reddit."""

    verification_code: str = "Attempting to verify u/{reddit_username} as <@{member_id}>. Your code is {code}"
    confirmation: str = "Verified as u/{reddit_username}!"
    webhook_notice: str = "u/{reddit_username} verified as <@{member_id}>"
    verified_comment: str = "u/{reddit_username} verified as {discord_username} on Discord!"
    revoked_comment: str = "This link has been revoked!"
    post_body: str = (
        "Link your Reddit account to {server_name} on Discord. Select the server roles you would like "
        "to access, then enter the code we send you by direct message."
    )


class Verification(BaseModel):
    """Verification code settings."""

    code_length: int = 6
    alphabet: str = "0123456789abcdefghijklmnopqrstuvwxyz"


class Constants(BaseModel):
    """The app constants."""

    messages: Messages = Messages()
    templates: Templates = Templates()
    verification: Verification = Verification()


constants = Constants()
