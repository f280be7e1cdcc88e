"""Agent package exports."""

from .planner import plan
from .results import MessageResult, RoleResult
from .roles import AgentRecord, AgentStatus, Role

__all__ = ["plan", "Role", "AgentStatus", "AgentRecord", "RoleResult", "MessageResult"]
