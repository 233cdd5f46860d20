from .crud_user_record import CRUDUserRecord
from ..session import AsyncSessionLocal

user_record = CRUDUserRecord(AsyncSessionLocal)

__all__ = ["CRUDUserRecord", "user_record"]
