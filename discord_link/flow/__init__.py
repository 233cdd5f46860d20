from .types import FlowResult, LinkState, RoleSelection
from .verification import VerificationFlow, generate_code

__all__ = ["FlowResult", "LinkState", "RoleSelection", "VerificationFlow", "generate_code"]
