from __future__ import annotations

from typing import Any

from ..ids import new_record_id
from ..models.tool_result import ToolResult
from ..models.ui_updates import CalendarDateJump, CalendarEventData, CalendarEventSlideIn
from .filesystem import JsonFile, VirtualFileSystem, surface_failures
from .registry import FunctionTool, define_tool

APP_ID = "calendar"
DEFAULT_PATH = "/calendar/events.json"


def _text(params: dict[str, Any], key: str) -> str:
    return str(params.get(key) or "").strip()


def calendar_tools(fs: VirtualFileSystem, target_id: str, *, path: str = DEFAULT_PATH) -> list[FunctionTool]:
    """Event CRUD for one calendar window; events are `{id, title, date, time?, endTime?}` records."""

    store = JsonFile(fs, path)
    list_target = f"{target_id}-event-list"

    def slide_in(event: dict[str, Any]) -> CalendarEventSlideIn:
        return CalendarEventSlideIn(
            target_id=list_target,
            event_data=CalendarEventData(
                title=str(event.get("title") or ""),
                time=str(event.get("time") or "All day"),
                date=str(event.get("date") or ""),
            ),
            direction="left",
        )

    async def list_events(params: dict[str, Any]) -> ToolResult:
        events = store.load_records() or []
        date = _text(params, "date")
        if not date:
            return ToolResult.ok({"events": events, "count": len(events)})
        events = [e for e in events if e.get("date") == date]
        return ToolResult.ok(
            {"events": events, "count": len(events)},
            ui_update=CalendarDateJump(target_id=target_id, from_date="", to_date=date, animated=True),
        )

    @surface_failures
    async def create_event(params: dict[str, Any]) -> ToolResult:
        title = _text(params, "title")
        date = _text(params, "date")
        if not title or not date:
            return ToolResult.fail("title and date are required")
        events = store.load_records() or []
        event: dict[str, Any] = {
            "id": new_record_id("evt", (e.get("id") for e in events)),
            "title": title,
            "date": date,
        }
        for key in ("time", "endTime"):
            value = _text(params, key)
            if value:
                event[key] = value
        events.append(event)
        store.save(events)
        return ToolResult.ok(event, ui_update=slide_in(event))

    @surface_failures
    async def delete_event(params: dict[str, Any]) -> ToolResult:
        event_id = _text(params, "eventId")
        if not event_id:
            return ToolResult.fail("eventId is required")
        events = store.load_records(missing_ok=False)
        if events is None:
            return ToolResult.fail("Could not load events")
        remaining = [e for e in events if e.get("id") != event_id]
        if len(remaining) == len(events):
            return ToolResult.fail("Event not found")
        store.save(remaining)
        return ToolResult.ok({"eventId": event_id})

    @surface_failures
    async def update_event(params: dict[str, Any]) -> ToolResult:
        event_id = _text(params, "eventId")
        if not event_id:
            return ToolResult.fail("eventId is required")
        events = store.load_records(missing_ok=False)
        if events is None:
            return ToolResult.fail("Could not load events")
        event = next((e for e in events if e.get("id") == event_id), None)
        if event is None:
            return ToolResult.fail("Event not found")
        for key in ("title", "date"):
            value = _text(params, key)
            if value:
                event[key] = value
        # An empty string clears an optional time.
        for key in ("time", "endTime"):
            if key not in params or params[key] is None:
                continue
            value = _text(params, key)
            if value:
                event[key] = value
            else:
                event.pop(key, None)
        store.save(events)
        return ToolResult.ok(event, ui_update=slide_in(event))

    event_id_prop = {"type": "string", "description": "Event id as returned by calendar_create_event or calendar_list_events"}
    time_prop = {"type": "string", "description": "Start time (HH:MM); empty for an all-day event"}
    end_prop = {"type": "string", "description": "End time (HH:MM)"}

    return [
        define_tool(
            name="calendar_list_events",
            description="List calendar events, optionally only those on one date",
            app_id=APP_ID,
            properties={"date": {"type": "string", "description": "Only events on this date (YYYY-MM-DD)"}},
            handler=list_events,
        ),
        define_tool(
            name="calendar_create_event",
            description="Create a calendar event",
            app_id=APP_ID,
            properties={
                "title": {"type": "string", "description": "Event title"},
                "date": {"type": "string", "description": "Event date (YYYY-MM-DD)"},
                "time": time_prop,
                "endTime": end_prop,
            },
            required=["title", "date"],
            handler=create_event,
        ),
        define_tool(
            name="calendar_delete_event",
            description="Delete a calendar event",
            app_id=APP_ID,
            properties={"eventId": event_id_prop},
            required=["eventId"],
            handler=delete_event,
        ),
        define_tool(
            name="calendar_update_event",
            description="Change the title, date or times of a calendar event",
            app_id=APP_ID,
            properties={
                "eventId": event_id_prop,
                "title": {"type": "string", "description": "New title"},
                "date": {"type": "string", "description": "New date (YYYY-MM-DD)"},
                "time": time_prop,
                "endTime": end_prop,
            },
            required=["eventId"],
            handler=update_event,
        ),
    ]
