"""Persistent human gates: approvals and generic human requests.

Both managers share the same lifecycle: a row is inserted as ``pending``,
resolved exactly once through a conditional update, and an agent loop can
poll for the outcome with a wall-clock timeout.
"""

from .approval import ApprovalManager
from .human_request import HumanRequestManager, store_token_response, token_secret_target

__all__ = ["ApprovalManager", "HumanRequestManager", "store_token_response", "token_secret_target"]
