from __future__ import annotations

"""Workspace file tools.

All paths are relative to the workspace of the calling task (``ToolContext.
workspace_path``), falling back to a workspace fixed at construction. Paths
that resolve outside the workspace are rejected.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import BaseTool, ToolContext, str_arg


def validate_path(workspace: str, rel_path: str) -> Path:
    """
    Resolve ``rel_path`` inside ``workspace``.

    A leading slash is treated as workspace-relative.

    Raises:
        ValueError: If no workspace is configured or the path escapes it.
    """
    if not workspace:
        raise ValueError("no workspace configured")
    root = Path(workspace).resolve()
    target = (root / os.path.normpath(rel_path.lstrip("/\\") or ".")).resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"path traversal not allowed: {rel_path}")
    return target


class _WorkspaceTool(BaseTool):
    def __init__(self, workspace: Optional[str] = None) -> None:
        self.workspace = workspace or ""

    def _resolve(self, ctx: ToolContext, rel_path: str) -> Path:
        return validate_path(ctx.workspace_path or self.workspace, rel_path)


class FileReadTool(_WorkspaceTool):
    name = "file_read"
    description = "Read a file from the project workspace"
    parameters = {"path": {"type": "string", "description": "Relative path to the file"}}
    required = ["path"]

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        path = self._resolve(ctx, str_arg(args, "path", required=True))
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise RuntimeError(f"read file: {e}") from e


class FileWriteTool(_WorkspaceTool):
    name = "file_write"
    description = "Write a file to the project workspace"
    parameters = {
        "path": {"type": "string", "description": "Relative path to the file"},
        "content": {"type": "string", "description": "File content to write"},
    }
    required = ["path", "content"]

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        rel = str_arg(args, "path", required=True)
        content = args.get("content")
        if not isinstance(content, str):
            content = "" if content is None else str(content)
        path = self._resolve(ctx, rel)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise RuntimeError(f"write file: {e}") from e
        return {"path": rel, "bytes_written": len(content.encode("utf-8"))}


class FileListTool(_WorkspaceTool):
    name = "file_list"
    description = "List files in the project workspace"
    parameters = {"path": {"type": "string", "description": "Relative directory path (default: root)"}}

    async def execute(self, ctx: ToolContext, args: Dict[str, Any]) -> Any:
        path = self._resolve(ctx, str_arg(args, "path", default="."))
        try:
            entries = sorted(path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise RuntimeError(f"list directory: {e}") from e
        files: List[Dict[str, Any]] = []
        for entry in entries:
            try:
                size = entry.stat().st_size
            except OSError:
                continue
            files.append({"name": entry.name, "is_dir": entry.is_dir(), "size": size})
        return files
