import json
from pathlib import Path

import pytest
from sqlalchemy import update

from ratchet_ai.agent_core.gates import ApprovalManager, HumanRequestManager
from ratchet_ai.agent_core.memory import MemoryStore
from ratchet_ai.agent_core.subagents import SubAgentManager
from ratchet_ai.agent_core.tools import ToolContext, ToolRegistry, register_builtin_tools, validate_path
from ratchet_ai.agent_core.tools.agents import AgentCheckTool, AgentSpawnTool, AgentWaitTool
from ratchet_ai.agent_core.tools.files import FileListTool, FileReadTool, FileWriteTool
from ratchet_ai.agent_core.tools.gates import CheckHumanRequestTool, RequestApprovalTool, RequestHumanTool
from ratchet_ai.agent_core.tools.memory import MemorySaveTool, MemorySearchTool
from ratchet_ai.core.database.entities.agents import Agent, Task


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "input.txt").write_text("hello world", encoding="utf-8")
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def ctx(workspace: Path) -> ToolContext:
    return ToolContext(agent_id="ag1", task_id="t1", project_id="p1", workspace_path=str(workspace))


class TestValidatePath:
    def test_relative_path_inside(self, workspace):
        assert validate_path(str(workspace), "src/main.py") == workspace.resolve() / "src" / "main.py"

    def test_leading_slash_is_workspace_relative(self, workspace):
        assert validate_path(str(workspace), "/input.txt") == workspace.resolve() / "input.txt"

    @pytest.mark.parametrize("rel", ["../outside.txt", "src/../../etc/passwd", "/../../etc"])
    def test_traversal_rejected(self, workspace, rel):
        with pytest.raises(ValueError, match="path traversal not allowed"):
            validate_path(str(workspace), rel)

    def test_missing_workspace(self):
        with pytest.raises(ValueError, match="no workspace configured"):
            validate_path("", "a.txt")


class TestFileTools:
    async def test_read(self, ctx):
        assert await FileReadTool().execute(ctx, {"path": "input.txt"}) == "hello world"

    async def test_read_missing_file(self, ctx):
        with pytest.raises(RuntimeError, match="read file"):
            await FileReadTool().execute(ctx, {"path": "nope.txt"})

    async def test_read_requires_path(self, ctx):
        with pytest.raises(ValueError, match="path is required"):
            await FileReadTool().execute(ctx, {})

    async def test_write_creates_parents(self, ctx, workspace):
        result = await FileWriteTool().execute(ctx, {"path": "out/deep/result.txt", "content": "héllo"})

        assert result == {"path": "out/deep/result.txt", "bytes_written": 6}
        assert (workspace / "out" / "deep" / "result.txt").read_text(encoding="utf-8") == "héllo"

    async def test_write_outside_rejected(self, ctx, workspace):
        with pytest.raises(ValueError, match="path traversal"):
            await FileWriteTool().execute(ctx, {"path": "../escape.txt", "content": "x"})
        assert not (workspace.parent / "escape.txt").exists()

    async def test_list(self, ctx):
        entries = await FileListTool().execute(ctx, {})
        assert entries == [
            {"name": "input.txt", "is_dir": False, "size": 11},
            {"name": "src", "is_dir": True, "size": entries[1]["size"]},
        ]

    async def test_constructor_workspace_is_fallback(self, workspace):
        tool = FileReadTool(str(workspace))
        assert await tool.execute(ToolContext(agent_id="ag1"), {"path": "input.txt"}) == "hello world"


class TestGateTools:
    async def test_request_approval_creates_pending(self, session_factory, ctx):
        manager = ApprovalManager(session_factory)

        result = await RequestApprovalTool(manager).execute(
            ctx, {"action": "deploy", "reason": "release", "details": {"env": "prod"}}
        )

        assert result["status"] == "pending"
        approval = await manager.get(result["approval_id"])
        assert approval.agent_id == "ag1"
        assert approval.task_id == "t1"
        assert json.loads(approval.details) == {"env": "prod"}

    async def test_request_approval_requires_reason(self, session_factory, ctx):
        with pytest.raises(ValueError, match="reason is required"):
            await RequestApprovalTool(ApprovalManager(session_factory)).execute(ctx, {"action": "deploy"})

    async def test_request_human_and_check(self, session_factory, ctx):
        manager = HumanRequestManager(session_factory)

        result = await RequestHumanTool(manager).execute(
            ctx,
            {
                "request_type": "token",
                "title": "GitHub token",
                "metadata": {"secret_name": "GH_TOKEN"},
                "blocking": True,
                "urgency": "high",
            },
        )
        checked = await CheckHumanRequestTool(manager).execute(ctx, {"request_id": result["request_id"]})

        assert result["blocking"] is True
        assert result["request_type"] == "token"
        assert checked["status"] == "pending"
        assert checked["urgency"] == "high"
        assert checked["project_id"] == "p1"
        assert json.loads(checked["metadata"]) == {"secret_name": "GH_TOKEN"}

    async def test_request_human_non_blocking_by_default(self, session_factory, ctx):
        result = await RequestHumanTool(HumanRequestManager(session_factory)).execute(
            ctx, {"request_type": "info", "title": "Question", "blocking": "yes"}
        )
        assert result["blocking"] is False


class TestAgentTools:
    async def test_spawn_check_wait(self, session_factory, ctx):
        async with session_factory() as s:
            s.add(Agent(id="ag1", name="Lead", is_lead=True))
            await s.commit()
        manager = SubAgentManager(session_factory, poll_interval=0.01)

        spawned = await AgentSpawnTool(manager).execute(ctx, {"name": "helper", "task_description": "look around"})
        checked = await AgentCheckTool(manager).execute(ctx, {"task_id": spawned["task_id"]})
        async with session_factory() as s:
            await s.execute(update(Task).where(Task.id == spawned["task_id"]).values(status="completed", result="found it"))
            await s.commit()
        waited = await AgentWaitTool(manager).execute(ctx, {"task_ids": [spawned["task_id"]], "timeout_seconds": 5})

        assert spawned["status"] == "spawned"
        assert checked == {"task_id": spawned["task_id"], "status": "pending", "result": ""}
        assert waited == {
            "results": [{"task_id": spawned["task_id"], "status": "completed", "result": "found it", "error": ""}]
        }

    async def test_spawn_needs_agent(self, session_factory):
        with pytest.raises(ValueError, match="no parent agent ID"):
            await AgentSpawnTool(SubAgentManager(session_factory)).execute(
                ToolContext(), {"name": "x", "task_description": "y"}
            )

    @pytest.mark.parametrize("task_ids", [None, [], [1, ""]])
    async def test_wait_validates_ids(self, session_factory, ctx, task_ids):
        with pytest.raises(ValueError):
            await AgentWaitTool(SubAgentManager(session_factory)).execute(ctx, {"task_ids": task_ids})


class TestMemoryTools:
    async def test_save_then_search(self, session_factory, ctx):
        store = MemoryStore(session_factory)

        saved = await MemorySaveTool(store).execute(ctx, {"content": "deploys use blue green", "category": "fact"})
        found = await MemorySearchTool(store).execute(ctx, {"query": "blue green"})

        assert saved == {"saved": True, "category": "fact"}
        assert found["count"] == 1
        assert found["results"][0]["content"] == "deploys use blue green"
        assert found["results"][0]["category"] == "fact"

    async def test_search_needs_agent(self, session_factory):
        with pytest.raises(ValueError, match="agent ID not available"):
            await MemorySearchTool(MemoryStore(session_factory)).execute(ToolContext(), {"query": "x"})


class TestRegisterBuiltinTools:
    def test_file_tools_only(self):
        registry = ToolRegistry()
        names = register_builtin_tools(registry, workspace="/tmp/ws")
        assert names == ["file_read", "file_write", "file_list"]
        assert registry.names() == ["file_list", "file_read", "file_write"]

    async def test_all_services(self, session_factory):
        registry = ToolRegistry()
        register_builtin_tools(
            registry,
            approvals=ApprovalManager(session_factory),
            human_requests=HumanRequestManager(session_factory),
            sub_agents=SubAgentManager(session_factory),
            memory=MemoryStore(session_factory),
        )
        assert registry.names() == [
            "agent_check",
            "agent_spawn",
            "agent_wait",
            "check_human_request",
            "file_list",
            "file_read",
            "file_write",
            "memory_save",
            "memory_search",
            "request_approval",
            "request_human",
        ]
