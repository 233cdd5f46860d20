import os
import re
from pathlib import Path
from typing import Any, Optional

import toml
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Discord(BaseSettings):
    """The Discord API settings."""

    TOKEN: Optional[SecretStr] = None
    SERVER_ID: Optional[str] = None
    SERVER_NAME: str = ""
    CHANNEL_ID: Optional[str] = None
    WEBHOOK: Optional[str] = None
    SEARCH_LIMIT: int = 10

    API_URL: str = "https://discord.com/api/v10"

    @field_validator("TOKEN")
    @classmethod
    def check_token_format(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        """Validate discord tokens format."""
        if v is None or not v.get_secret_value():
            return None
        pattern = re.compile(r"[\w-]{24,}\.[\w-]{6}\.[\w-]{27,}")
        assert pattern.fullmatch(
            v.get_secret_value()
        ), f"Discord token must follow >> {pattern.pattern} << pattern."
        return v

    @field_validator("SERVER_ID", "CHANNEL_ID")
    @classmethod
    def check_ids_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate discord ids format."""
        if not v:
            return None

        assert v.isdigit() and len(v) > 16, "Discord ids must be numeric snowflakes."
        return v

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DISCORD_", extra="ignore")


class Roles(BaseSettings):
    """The role category settings."""

    DEVELOPER: Optional[str] = None
    MODERATOR: Optional[str] = None
    OFFICE_HOURS: Optional[str] = None
    ANNOUNCEMENTS: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def check_length(cls, value: str | int | None) -> str | None:
        if value is None or value == "":
            return None
        value_str = str(value)
        if not 17 <= len(value_str) <= 20:
            raise ValueError("Each role ID must be between 17 & 20 characters long")
        return value_str

    model_config = SettingsConfigDict(env_file=".env", env_prefix="ROLE_", extra="ignore")


class Reddit(BaseSettings):
    """The Reddit API settings."""

    CLIENT_ID: str = ""
    CLIENT_SECRET: SecretStr = SecretStr("")
    USERNAME: str = ""
    PASSWORD: SecretStr = SecretStr("")
    USER_AGENT: str = "discord-link/0.1"
    POST_TITLE: str = "Verify your Discord username for the Reddit Devs server"

    AUTH_URL: str = "https://www.reddit.com/api/v1/access_token"
    API_URL: str = "https://oauth.reddit.com"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="REDDIT_", extra="ignore")


class Database(BaseSettings):
    """The database settings."""

    HOST: str = "localhost"
    PORT: int = 3306
    DATABASE: str = "discord_link"
    USER: str = "discord_link"
    PASSWORD: str = ""
    CHARSET: str = "utf8mb4"

    # Overrides the MariaDB connection string when set.
    URL: Optional[str] = None

    def assemble_db_connection(self) -> str:
        if self.URL:
            return self.URL
        connection_string = (
            f"mariadb+asyncmy://{self.USER}:{self.PASSWORD}@{self.HOST}:{self.PORT}/"
            f"{self.DATABASE}?charset="
            f"{self.CHARSET}"
        )
        return connection_string

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MYSQL_", extra="ignore")


class Global(BaseSettings):
    """The app settings."""

    discord: Optional[Discord] = None
    roles: Optional[Roles] = None
    reddit: Optional[Reddit] = None
    database: Optional[Database] = None

    ENVIRONMENT: str = "development"
    SENTRY_DSN: str | None = None
    LOG_LEVEL: str | int = "INFO"
    DEBUG: bool = False

    WEB_PORT: int = 1337
    WEB_TOKEN: str = ""

    # Comment on the verification post once a link is confirmed.
    ANNOUNCE_VERIFICATIONS: bool = False

    ROOT: Optional[Path] = None

    VERSION: str | None = Field(default=None, validate_default=True)

    @field_validator("VERSION")
    @classmethod
    def get_project_versions(cls, v: Optional[str]) -> str:
        def _get_from_pyproject():
            if not Path("pyproject.toml").exists():
                return None
            with open("pyproject.toml", "r") as f:
                config = toml.load(f)
                version = config.get("project", {}).get("version")
                return version

        if not v:
            return _get_from_pyproject()
        return v

    def category_roles(self) -> dict[str, Optional[str]]:
        """Role ids keyed by category, in the order roles are granted."""
        return {
            "moderator": self.roles.MODERATOR,
            "developer": self.roles.DEVELOPER,
            "office_hours": self.roles.OFFICE_HOURS,
            "announcements": self.roles.ANNOUNCEMENTS,
        }

    def missing_role_config(self) -> list[str]:
        """Names of the settings every role mutation depends on that are not set."""
        required: dict[str, Any] = {
            "DISCORD_SERVER_ID": self.discord.SERVER_ID,
            "DISCORD_TOKEN": self.discord.TOKEN,
            "DISCORD_WEBHOOK": self.discord.WEBHOOK,
            "ROLE_DEVELOPER": self.roles.DEVELOPER,
            "ROLE_MODERATOR": self.roles.MODERATOR,
            "ROLE_OFFICE_HOURS": self.roles.OFFICE_HOURS,
            "ROLE_ANNOUNCEMENTS": self.roles.ANNOUNCEMENTS,
        }
        return [name for name, value in required.items() if not value]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def load_settings(env_file: str | None = None):
    global_settings = Global(_env_file=env_file)
    global_settings.discord = Discord(_env_file=env_file)
    global_settings.roles = Roles(_env_file=env_file)
    global_settings.reddit = Reddit(_env_file=env_file)
    global_settings.database = Database(_env_file=env_file)

    return global_settings


settings = load_settings(
    os.environ.get("ENV_PATH") if os.environ.get("APP_ENVIRONMENT") else ".test.env"
)


def get_settings() -> Global:
    """Return the live settings object, looked up on every call."""
    return settings
