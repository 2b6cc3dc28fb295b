from __future__ import annotations

from typing import Any

from ..ids import new_record_id
from ..models.tool_result import ToolResult
from ..models.ui_updates import TaskData, TodoCheckAnimation, TodoTaskPopIn
from .filesystem import JsonFile, VirtualFileSystem, surface_failures
from .registry import FunctionTool, define_tool

APP_ID = "todo"
DEFAULT_PATH = "/todo/tasks.json"
PRIORITIES = ("low", "medium", "high")


def todo_tools(fs: VirtualFileSystem, target_id: str, *, path: str = DEFAULT_PATH) -> list[FunctionTool]:
    store = JsonFile(fs, path)
    list_target = f"{target_id}-list"

    @surface_failures
    async def add_task(params: dict[str, Any]) -> ToolResult:
        title = str(params.get("title") or "").strip()
        if not title:
            return ToolResult.fail("title is required")
        priority = params.get("priority")
        if priority not in PRIORITIES:
            priority = "medium"
        tasks = store.load_records()
        if tasks is None:
            return ToolResult.fail("Could not load tasks")
        task_id = new_record_id("task", (t.get("id") for t in tasks))
        task: dict[str, Any] = {
            "id": task_id,
            "text": title,
            "done": False,
            "priority": priority,
        }
        due = params.get("dueDate")
        if isinstance(due, str) and due.strip():
            task["dueDate"] = due.strip()
        tasks.append(task)
        store.save(tasks)
        return ToolResult.ok(
            task,
            ui_update=TodoTaskPopIn(
                target_id=list_target,
                task_data=TaskData(id=task["id"], title=title, priority=priority, position=len(tasks) - 1),
            ),
        )

    @surface_failures
    async def complete_task(params: dict[str, Any]) -> ToolResult:
        task_id = str(params.get("taskId") or "").strip()
        tasks = store.load_records(missing_ok=False)
        if tasks is None:
            return ToolResult.fail("Could not load tasks")
        task = next((t for t in tasks if t.get("id") == task_id), None)
        if task is None:
            return ToolResult.fail("Task not found")
        task["done"] = True
        store.save(tasks)
        return ToolResult.ok(
            {"taskId": task_id},
            ui_update=TodoCheckAnimation(target_id=list_target, task_id=task_id, strikethrough=True, confetti=True),
        )

    async def list_tasks(params: dict[str, Any]) -> ToolResult:
        tasks = store.load_records()
        if tasks is None:
            return ToolResult.fail("Could not load tasks")
        completed = params.get("completed")
        if isinstance(completed, bool):
            tasks = [t for t in tasks if bool(t.get("done")) is completed]
        return ToolResult.ok({"tasks": tasks, "count": len(tasks)})

    @surface_failures
    async def delete_task(params: dict[str, Any]) -> ToolResult:
        task_id = str(params.get("taskId") or "").strip()
        tasks = store.load_records(missing_ok=False)
        if tasks is None:
            return ToolResult.fail("Could not load tasks")
        remaining = [t for t in tasks if t.get("id") != task_id]
        if len(remaining) == len(tasks):
            return ToolResult.fail("Task not found")
        store.save(remaining)
        return ToolResult.ok({"taskId": task_id})

    task_id_prop = {"type": "string", "description": "Task id as returned by todo_add_task or todo_list_tasks"}

    return [
        define_tool(
            name="todo_add_task",
            description="Add a task to the todo list",
            app_id=APP_ID,
            properties={
                "title": {"type": "string", "description": "Task title"},
                "priority": {"type": "string", "description": "Task priority", "enum": list(PRIORITIES)},
                "dueDate": {"type": "string", "description": "Optional due date (YYYY-MM-DD)"},
            },
            required=["title"],
            handler=add_task,
        ),
        define_tool(
            name="todo_complete_task",
            description="Mark a task as done",
            app_id=APP_ID,
            properties={"taskId": task_id_prop},
            required=["taskId"],
            handler=complete_task,
        ),
        define_tool(
            name="todo_list_tasks",
            description="List tasks; pass completed=true or false to filter",
            app_id=APP_ID,
            properties={"completed": {"type": "boolean", "description": "Only return done (true) or open (false) tasks"}},
            handler=list_tasks,
        ),
        define_tool(
            name="todo_delete_task",
            description="Delete a task from the list",
            app_id=APP_ID,
            properties={"taskId": task_id_prop},
            required=["taskId"],
            handler=delete_task,
        ),
    ]
