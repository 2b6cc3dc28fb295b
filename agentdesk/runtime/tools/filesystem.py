from __future__ import annotations

import functools
import json
import threading
from collections.abc import Awaitable, Callable
from typing import Any, Literal, Protocol, runtime_checkable

from ..models.tool_result import ToolResult

DIR_PLACEHOLDER = ".agentdesk-dir"


class VirtualFileSystemError(RuntimeError):
    pass


def normalize_path(path: str) -> str:
    p = str(path or "").replace("\\", "/").strip()
    if not p.startswith("/"):
        p = "/" + p
    return p


def _dir_prefix(path: str) -> str:
    return path if path.endswith("/") else path + "/"


@runtime_checkable
class VirtualFileSystem(Protocol):
    def read(self, path: str) -> str: ...

    def write(self, path: str, content: str) -> None: ...

    def list(self, path: str) -> list[str]: ...

    def create_dir(self, path: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def delete_path(self, path: str) -> Literal["file", "directory"]: ...

    def delete_directory(self, path: str) -> None: ...

    def move(self, old_path: str, new_path: str) -> None: ...

    def copy(self, source_path: str, destination_path: str) -> None: ...


class InMemoryFileSystem:
    """
    Flat path -> text store.

    Directories are implicit in file paths; an empty directory is kept alive by a hidden
    placeholder entry that `list()` never reports.
    """

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, str] = {normalize_path(k): v for k, v in (files or {}).items()}

    def read(self, path: str) -> str:
        p = normalize_path(path)
        with self._lock:
            if p not in self._files:
                raise VirtualFileSystemError(f"File not found: {p}")
            return self._files[p]

    def write(self, path: str, content: str) -> None:
        p = normalize_path(path)
        with self._lock:
            self._files[p] = str(content)

    def exists(self, path: str) -> bool:
        p = normalize_path(path)
        prefix = _dir_prefix(p)
        with self._lock:
            return p in self._files or any(k.startswith(prefix) for k in self._files)

    def list(self, path: str) -> list[str]:
        prefix = _dir_prefix(normalize_path(path))
        seen: set[str] = set()
        with self._lock:
            for key in self._files:
                if not key.startswith(prefix):
                    continue
                first = key[len(prefix) :].split("/")[0]
                if first and first != DIR_PLACEHOLDER:
                    seen.add(first)
        return sorted(seen)

    def create_dir(self, path: str) -> None:
        placeholder = _dir_prefix(normalize_path(path)) + DIR_PLACEHOLDER
        with self._lock:
            self._files[placeholder] = ""

    def delete(self, path: str) -> None:
        p = normalize_path(path)
        with self._lock:
            if p not in self._files:
                raise VirtualFileSystemError(f"File not found: {p}")
            del self._files[p]

    def delete_directory(self, path: str) -> None:
        prefix = _dir_prefix(normalize_path(path))
        with self._lock:
            for key in [k for k in self._files if k.startswith(prefix)]:
                del self._files[key]

    def delete_path(self, path: str) -> Literal["file", "directory"]:
        p = normalize_path(path)
        prefix = _dir_prefix(p)
        with self._lock:
            if p in self._files:
                del self._files[p]
                return "file"
            keys = [k for k in self._files if k.startswith(prefix)]
            if not keys:
                raise VirtualFileSystemError(f"Path not found: {p}")
            for key in keys:
                del self._files[key]
            return "directory"

    def move(self, old_path: str, new_path: str) -> None:
        old = normalize_path(old_path)
        new = normalize_path(new_path)
        with self._lock:
            if old not in self._files:
                raise VirtualFileSystemError(f"File not found: {old}")
            self._files[new] = self._files.pop(old)

    def copy(self, source_path: str, destination_path: str) -> None:
        src = normalize_path(source_path)
        dst = normalize_path(destination_path)
        with self._lock:
            if src not in self._files:
                raise VirtualFileSystemError(f"File not found: {src}")
            self._files[dst] = self._files[src]


def surface_failures(handler: Callable[[dict[str, Any]], Awaitable[ToolResult]]) -> Callable[[dict[str, Any]], Awaitable[ToolResult]]:
    """Turn file-system errors raised by a tool action into `success=False` results."""

    @functools.wraps(handler)
    async def _wrapped(params: dict[str, Any]) -> ToolResult:
        try:
            return await handler(params)
        except VirtualFileSystemError as e:
            return ToolResult.fail(str(e))

    return _wrapped


def parent_dir(path: str) -> str:
    cut = path.rfind("/")
    return "/" if cut <= 0 else path[:cut]


class JsonFile:
    """One JSON document kept at a fixed path of a virtual file system."""

    def __init__(self, fs: VirtualFileSystem, path: str) -> None:
        self._fs = fs
        self.path = path

    def read(self) -> Any:
        """Parsed content; raises VirtualFileSystemError when missing and ValueError when not JSON."""

        return json.loads(self._fs.read(self.path) or "null")

    def load_records(self, *, missing_ok: bool = True) -> list[dict[str, Any]] | None:
        """
        The document as a list of objects.

        A missing file is an empty list when `missing_ok`, otherwise None; content that is not a
        JSON list is None. Non-object entries are dropped.
        """

        try:
            data = self.read()
        except VirtualFileSystemError:
            return [] if missing_ok else None
        except ValueError:
            return None
        if data is None:
            return []
        if not isinstance(data, list):
            return None
        return [r for r in data if isinstance(r, dict)]

    def load_object(self) -> dict[str, Any]:
        try:
            data = self.read()
        except (VirtualFileSystemError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, value: Any) -> None:
        self._fs.write(self.path, json.dumps(value, indent=2, ensure_ascii=False))
