from .config import settings
from .constants import constants

__all__ = ["settings", "constants"]
