from __future__ import annotations

"""Runtime service registry, task input and LangGraph state types.

The agent loop is dependency-injected:

- ``ServiceRegistry`` holds the services a loop may use. Every field is
  optional; the loop skips the behaviour of any service that is missing.
- ``AgentTask`` identifies the agent and the task one loop run drives.
- ``_GraphState`` is the mutable state passed between LangGraph nodes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, NotRequired, Optional, Required, TypedDict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..events import SSEHub
from ..gates import ApprovalManager, HumanRequestManager
from ..memory import MemoryStore
from ..provider import HTTPSource, Provider, ProviderRegistry
from ..schemas import Message, StepResult, ToolCall, ToolDefinition
from ..security import SecretGuard
from ..skills import SkillManager
from ..subagents import SubAgentManager
from ..tools import ContainerExecutor, ToolContext, ToolRegistry
from ..transcript import TranscriptRecorder
from .context_manager import ContextManager
from .loop_detector import LoopDetector

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI agent."
DEFAULT_TASK_DESCRIPTION = "Complete the assigned task."
DEFAULT_AGENT_NAME = "agent"


@dataclass(frozen=True)
class ServiceRegistry:
    """Services available to agent loops.

    ``providers`` is consulted first (by the task's provider alias); on
    failure the loop falls back to ``named_providers[config.provider]`` and
    then to ``provider``. ``session_factory`` is used for project and task
    rows. ``interactions`` is the interactive response source exposed over
    the API, when one is configured.
    """

    session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    provider: Optional[Provider] = None
    providers: Optional[ProviderRegistry] = None
    named_providers: Dict[str, Provider] = field(default_factory=dict)
    tools: Optional[ToolRegistry] = None
    guard: Optional[SecretGuard] = None
    transcripts: Optional[TranscriptRecorder] = None
    container: Optional[ContainerExecutor] = None
    sub_agents: Optional[SubAgentManager] = None
    approvals: Optional[ApprovalManager] = None
    human_requests: Optional[HumanRequestManager] = None
    memory: Optional[MemoryStore] = None
    skills: Optional[SkillManager] = None
    hub: Optional[SSEHub] = None
    interactions: Optional[HTTPSource] = None


@dataclass
class AgentTask:
    """The agent identity and task a loop run works on.

    Empty ``system_prompt``, ``description`` and ``agent_name`` fall back to
    generic defaults; an empty ``agent_id`` falls back to the agent name.
    """

    task_id: str = ""
    description: str = ""
    agent_id: str = ""
    agent_name: str = ""
    team_id: str = ""
    project_id: str = ""
    system_prompt: str = ""
    provider_alias: str = ""

    def __post_init__(self) -> None:
        self.system_prompt = self.system_prompt or DEFAULT_SYSTEM_PROMPT
        self.description = self.description or DEFAULT_TASK_DESCRIPTION
        self.agent_name = self.agent_name or DEFAULT_AGENT_NAME
        self.agent_id = self.agent_id or self.agent_name


@dataclass
class _LoopRun:
    """Per-run collaborators that do not change between iterations."""

    task: AgentTask
    provider: Provider
    tool_ctx: ToolContext
    tool_defs: List[ToolDefinition]
    detector: LoopDetector
    context: ContextManager


class _GraphState(TypedDict):
    """Mutable LangGraph state for a single loop run.

    Required keys:

    - ``run``: the per-run collaborators.
    - ``messages``: the conversation sent to the provider.
    - ``iteration``: number of provider calls started so far.
    - ``final_content``: content of the last assistant response.

    Optional keys:

    - ``pending_calls``: tool calls of the last response, still to execute.
    - ``outcome``: set when a branch ends the run early.
    """

    run: Required[_LoopRun]
    messages: Required[List[Message]]
    iteration: Required[int]
    final_content: Required[str]
    pending_calls: NotRequired[List[ToolCall]]
    outcome: NotRequired[Optional[StepResult]]
