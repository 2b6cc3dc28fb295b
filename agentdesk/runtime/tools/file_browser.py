from __future__ import annotations

from typing import Any

from ..models.tool_result import ToolResult
from ..models.ui_updates import FileBrowserCreateFile, FileBrowserFileHighlightPath, FileBrowserFolderExpand, FileBrowserMoveAnimation
from .filesystem import VirtualFileSystem, VirtualFileSystemError, parent_dir, surface_failures
from .registry import FunctionTool, define_tool

APP_ID = "file-browser"
MAX_READ_CHARS = 8000


def _str_param(params: dict[str, Any], key: str, default: str = "") -> str:
    value = params.get(key)
    return str(value).strip() if value is not None else default


def _str_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [s for s in (str(p).strip() for p in raw if p is not None) if s]


def _pairs(raw: Any, first: str, second: str) -> list[tuple[str, str]]:
    if not isinstance(raw, list):
        return []
    out: list[tuple[str, str]] = []
    for op in raw:
        if not isinstance(op, dict) or first not in op or second not in op:
            continue
        a = str(op[first]).strip()
        b = str(op[second]).strip()
        if a and b:
            out.append((a, b))
    return out


def _batch_result(
    succeeded: list[str],
    failed: list[dict[str, str]],
    count: int,
    *,
    ui_update: Any = None,
) -> ToolResult:
    if failed:
        details = "; ".join(f"{f['path']}: {f['error']}" for f in failed)
        ok = ", ".join(succeeded) or "none"
        return ToolResult.fail(f"{len(failed)} of {count} operation(s) failed ({details}). Succeeded: {ok}")
    return ToolResult.ok({"succeeded": succeeded, "failed": [], "count": count}, ui_update=ui_update)


def file_browser_tools(fs: VirtualFileSystem, target_id: str) -> list[FunctionTool]:
    """Tools for one file-browser window; UI updates address `target_id`."""

    def expand(path: str) -> FileBrowserFolderExpand:
        return FileBrowserFolderExpand(target_id=target_id, folder_path=path, animated=True)

    @surface_failures
    async def list_directory(params: dict[str, Any]) -> ToolResult:
        path = _str_param(params, "path", "/") or "/"
        return ToolResult.ok({"path": path, "entries": fs.list(path)}, ui_update=expand(path))

    @surface_failures
    async def read_file(params: dict[str, Any]) -> ToolResult:
        path = _str_param(params, "path")
        if not path:
            return ToolResult.fail("path is required")
        content = fs.read(path)
        if len(content) > MAX_READ_CHARS:
            content = content[:MAX_READ_CHARS] + "\n...[truncated]"
        return ToolResult.ok(
            {"path": path, "content": content},
            ui_update=FileBrowserFileHighlightPath(target_id=target_id, file_path=path, breadcrumb=True),
        )

    @surface_failures
    async def write_file(params: dict[str, Any]) -> ToolResult:
        path = _str_param(params, "path")
        if not path:
            return ToolResult.fail("path is required")
        fs.write(path, str(params.get("content") or ""))
        return ToolResult.ok(
            {"path": path},
            ui_update=FileBrowserCreateFile(target_id=target_id, file_path=path, file_type="file", parent_path=parent_dir(path)),
        )

    @surface_failures
    async def move_file(params: dict[str, Any]) -> ToolResult:
        old_path = _str_param(params, "oldPath")
        new_path = _str_param(params, "newPath")
        if not old_path or not new_path:
            return ToolResult.fail("oldPath and newPath are required")
        fs.move(old_path, new_path)
        return ToolResult.ok(
            {"oldPath": old_path, "newPath": new_path},
            ui_update=FileBrowserMoveAnimation(
                target_id=target_id,
                from_path=old_path,
                to_path=parent_dir(new_path),
                duration=500,
            ),
        )

    @surface_failures
    async def delete_file(params: dict[str, Any]) -> ToolResult:
        path = _str_param(params, "path")
        if not path:
            return ToolResult.fail("path is required")
        kind = fs.delete_path(path)
        return ToolResult.ok({"path": path, "deletedAs": kind})

    @surface_failures
    async def delete_directory(params: dict[str, Any]) -> ToolResult:
        path = _str_param(params, "path")
        if not path:
            return ToolResult.fail("path is required")
        fs.delete_directory(path)
        return ToolResult.ok({"path": path})

    @surface_failures
    async def copy_file(params: dict[str, Any]) -> ToolResult:
        source = _str_param(params, "sourcePath")
        destination = _str_param(params, "destinationPath")
        if not source or not destination:
            return ToolResult.fail("sourcePath and destinationPath are required")
        fs.copy(source, destination)
        return ToolResult.ok(
            {"sourcePath": source, "destinationPath": destination},
            ui_update=FileBrowserCreateFile(
                target_id=target_id,
                file_path=destination,
                file_type="file",
                parent_path=parent_dir(destination),
            ),
        )

    @surface_failures
    async def create_directory(params: dict[str, Any]) -> ToolResult:
        path = _str_param(params, "path")
        if not path:
            return ToolResult.fail("path is required")
        fs.create_dir(path)
        return ToolResult.ok({"path": path}, ui_update=expand(path))

    async def batch_move(params: dict[str, Any]) -> ToolResult:
        operations = _pairs(params.get("operations"), "oldPath", "newPath")
        if not operations:
            return ToolResult.fail("At least one operation with oldPath and newPath is required")
        succeeded: list[str] = []
        failed: list[dict[str, str]] = []
        for old_path, new_path in operations:
            try:
                fs.move(old_path, new_path)
                succeeded.append(old_path)
            except VirtualFileSystemError as e:
                failed.append({"path": old_path, "error": str(e)})
        update = expand(parent_dir(operations[-1][1])) if succeeded else None
        return _batch_result(succeeded, failed, len(operations), ui_update=update)

    async def batch_delete(params: dict[str, Any]) -> ToolResult:
        paths = _str_list(params.get("paths"))
        if not paths:
            return ToolResult.fail("At least one path is required")
        succeeded: list[str] = []
        failed: list[dict[str, str]] = []
        for path in paths:
            try:
                fs.delete_path(path)
                succeeded.append(path)
            except VirtualFileSystemError as e:
                failed.append({"path": path, "error": str(e)})
        return _batch_result(succeeded, failed, len(paths))

    async def batch_create_directories(params: dict[str, Any]) -> ToolResult:
        paths = _str_list(params.get("paths"))
        if not paths:
            return ToolResult.fail("At least one path is required")
        succeeded: list[str] = []
        failed: list[dict[str, str]] = []
        for path in paths:
            try:
                fs.create_dir(path)
                succeeded.append(path)
            except VirtualFileSystemError as e:
                failed.append({"path": path, "error": str(e)})
        update = expand(paths[-1]) if succeeded else None
        return _batch_result(succeeded, failed, len(paths), ui_update=update)

    async def batch_copy(params: dict[str, Any]) -> ToolResult:
        operations = _pairs(params.get("operations"), "sourcePath", "destinationPath")
        if not operations:
            return ToolResult.fail("At least one operation with sourcePath and destinationPath is required")
        succeeded: list[str] = []
        failed: list[dict[str, str]] = []
        for source, destination in operations:
            try:
                fs.copy(source, destination)
                succeeded.append(source)
            except VirtualFileSystemError as e:
                failed.append({"path": source, "error": str(e)})
        update = expand(parent_dir(operations[-1][1])) if succeeded else None
        return _batch_result(succeeded, failed, len(operations), ui_update=update)

    path_prop = {"type": "string", "description": "Full file path"}
    move_op = {
        "type": "object",
        "properties": {
            "oldPath": {"type": "string", "description": "Current path"},
            "newPath": {"type": "string", "description": "New path"},
        },
        "required": ["oldPath", "newPath"],
    }
    copy_op = {
        "type": "object",
        "properties": {
            "sourcePath": {"type": "string", "description": "Path of the file to copy"},
            "destinationPath": {"type": "string", "description": "Path for the copy"},
        },
        "required": ["sourcePath", "destinationPath"],
    }

    return [
        define_tool(
            name="file_browser_list_directory",
            description="List files and folders in a directory path",
            app_id=APP_ID,
            properties={"path": {"type": "string", "description": "Directory path (e.g. / or /notes)"}},
            required=["path"],
            handler=list_directory,
        ),
        define_tool(
            name="file_browser_read_file",
            description="Read content of a file. Truncated if large.",
            app_id=APP_ID,
            properties={"path": path_prop},
            required=["path"],
            handler=read_file,
        ),
        define_tool(
            name="file_browser_write_file",
            description="Write content to a file (creates or overwrites)",
            app_id=APP_ID,
            properties={"path": path_prop, "content": {"type": "string", "description": "File content"}},
            required=["path", "content"],
            handler=write_file,
        ),
        define_tool(
            name="file_browser_move_file",
            description="Move a file or path to a new location",
            app_id=APP_ID,
            properties=move_op["properties"],
            required=["oldPath", "newPath"],
            handler=move_file,
        ),
        define_tool(
            name="file_browser_delete_file",
            description=(
                "Delete a file or directory at the given path. "
                "For directories, removes the folder and all its contents."
            ),
            app_id=APP_ID,
            properties={"path": {"type": "string", "description": "Full file or directory path"}},
            required=["path"],
            handler=delete_file,
        ),
        define_tool(
            name="file_browser_delete_directory",
            description=(
                "Delete a directory and all its contents. Use when you know the path is a folder. "
                "For files or unknown paths, use file_browser_delete_file instead."
            ),
            app_id=APP_ID,
            properties={"path": {"type": "string", "description": "Directory path to remove"}},
            required=["path"],
            handler=delete_directory,
        ),
        define_tool(
            name="file_browser_copy_file",
            description="Copy a file to a new location. The original file is kept.",
            app_id=APP_ID,
            properties=copy_op["properties"],
            required=["sourcePath", "destinationPath"],
            handler=copy_file,
        ),
        define_tool(
            name="file_browser_create_directory",
            description="Create a directory (folder) at the given path. Use before moving or writing files into a new folder.",
            app_id=APP_ID,
            properties={"path": {"type": "string", "description": "Directory path (e.g. /notes/archive)"}},
            required=["path"],
            handler=create_directory,
        ),
        define_tool(
            name="file_browser_batch_move",
            description="Move multiple files in one call. Provide an array of { oldPath, newPath } pairs.",
            app_id=APP_ID,
            properties={"operations": {"type": "array", "description": "List of move operations", "items": move_op}},
            required=["operations"],
            handler=batch_move,
        ),
        define_tool(
            name="file_browser_batch_delete",
            description="Delete multiple files or directories in one call; directories are removed with their contents.",
            app_id=APP_ID,
            properties={"paths": {"type": "array", "description": "List of paths to delete", "items": {"type": "string"}}},
            required=["paths"],
            handler=batch_delete,
        ),
        define_tool(
            name="file_browser_batch_create_directories",
            description="Create multiple directories in one call.",
            app_id=APP_ID,
            properties={
                "paths": {"type": "array", "description": "List of directory paths to create", "items": {"type": "string"}}
            },
            required=["paths"],
            handler=batch_create_directories,
        ),
        define_tool(
            name="file_browser_batch_copy",
            description="Copy multiple files in one call. Provide an array of { sourcePath, destinationPath } pairs.",
            app_id=APP_ID,
            properties={"operations": {"type": "array", "description": "List of copy operations", "items": copy_op}},
            required=["operations"],
            handler=batch_copy,
        ),
    ]
