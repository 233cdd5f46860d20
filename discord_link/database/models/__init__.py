from discord_link.database.base_class import Base

from .user_record import UserRecord

__all__ = ["Base", "UserRecord"]
