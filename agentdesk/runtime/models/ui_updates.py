from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from ..ui.surfaces import PlayContext, UISurface

Priority = Literal["low", "medium", "high"]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="ignore")


class Point(_WireModel):
    x: float
    y: float


class Box(_WireModel):
    x: float
    y: float
    width: float | None = None
    height: float | None = None


class TaskData(_WireModel):
    title: str
    id: str | None = None
    priority: Priority = "medium"
    position: int = 0


class CalendarEventData(_WireModel):
    title: str
    time: str = ""
    date: str = ""


class _UIUpdateBase(_WireModel):
    """Shared envelope: every descriptor addresses one surface and may carry delay/duration (ms)."""

    target_id: str
    delay: float | None = None
    duration: float | None = None

    # Variants that drive a structured editor resolve a bridge before playing.
    needs_bridge: ClassVar[bool] = False

    async def apply(self, ctx: PlayContext) -> None:
        raise NotImplementedError

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _surface(ctx: PlayContext) -> UISurface:
    surface = ctx.surface
    if surface is None:
        raise RuntimeError("this update needs a mounted surface.")
    return surface


# ----- Todo -----


class TodoTaskPopIn(_UIUpdateBase):
    type: Literal["todo_task_pop_in"] = "todo_task_pop_in"
    task_data: TaskData

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        index = max(0, min(self.task_data.position, len(surface.items)))
        surface.items.insert(
            index,
            {"id": self.task_data.id, "title": self.task_data.title, "priority": self.task_data.priority, "checked": False},
        )
        await ctx.pause_ms(50)
        surface.record(self.type, title=self.task_data.title, index=index)


class TodoCheckAnimation(_UIUpdateBase):
    type: Literal["todo_check_animation"] = "todo_check_animation"
    task_id: str
    strikethrough: bool = False
    confetti: bool = False

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        item = surface.find_item("id", self.task_id)
        if item is None:
            return
        await ctx.pause_ms(300)
        item["checked"] = True
        if self.strikethrough:
            item["completing"] = True
            await ctx.pause_ms(400)
        if self.confetti:
            surface.classes.add("confetti")
        surface.record(self.type, task_id=self.task_id)


# ----- Calendar -----


class CalendarEventSlideIn(_UIUpdateBase):
    type: Literal["calendar_event_slide_in"] = "calendar_event_slide_in"
    event_data: CalendarEventData
    direction: Literal["left", "right", "top", "bottom"] = "right"

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.items.append({"kind": "event", **self.event_data.model_dump()})
        surface.record(self.type, title=self.event_data.title, direction=self.direction)


class CalendarDateJump(_UIUpdateBase):
    type: Literal["calendar_date_jump"] = "calendar_date_jump"
    from_date: str
    to_date: str
    animated: bool = True

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        if self.animated:
            await ctx.pause_ms(300)
        surface.fields["date"] = self.to_date
        surface.record(self.type, from_date=self.from_date, to_date=self.to_date)


# ----- Timer -----


class TimerStartRipple(_UIUpdateBase):
    type: Literal["timer_start_ripple"] = "timer_start_ripple"
    duration: float

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.fields["remaining_seconds"] = self.duration
        surface.fields["running"] = True
        surface.record(self.type, duration=self.duration)


# ----- File browser -----


class FileBrowserFolderExpand(_UIUpdateBase):
    type: Literal["file_browser_folder_expand"] = "file_browser_folder_expand"
    folder_path: str
    animated: bool = True

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        expanded = surface.fields.setdefault("expanded", [])
        if self.folder_path not in expanded:
            expanded.append(self.folder_path)
        surface.record(self.type, folder_path=self.folder_path)


class FileBrowserFileHighlightPath(_UIUpdateBase):
    type: Literal["file_browser_file_highlight_path"] = "file_browser_file_highlight_path"
    file_path: str
    breadcrumb: bool = False

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.fields["selected"] = self.file_path
        if self.breadcrumb:
            surface.fields["breadcrumb"] = [p for p in self.file_path.split("/") if p]
        surface.record(self.type, file_path=self.file_path)


class FileBrowserCreateFile(_UIUpdateBase):
    type: Literal["file_browser_create_file"] = "file_browser_create_file"
    file_path: str
    file_type: Literal["file", "folder"] = "file"
    parent_path: str = "/"

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        if surface.find_item("path", self.file_path) is None:
            surface.items.append({"path": self.file_path, "type": self.file_type, "parent": self.parent_path})
        surface.record(self.type, file_path=self.file_path, file_type=self.file_type)


class FileBrowserMoveAnimation(_UIUpdateBase):
    type: Literal["file_browser_move_animation"] = "file_browser_move_animation"
    from_path: str
    to_path: str

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        await ctx.pause_ms(self.duration if self.duration is not None else 400)
        item = surface.find_item("path", self.from_path)
        if item is not None:
            item["path"] = self.to_path
        surface.record(self.type, from_path=self.from_path, to_path=self.to_path)


# ----- Code editor -----


class CodeEditorTypeCode(_UIUpdateBase):
    type: Literal["code_editor_type_code"] = "code_editor_type_code"
    code: str
    start_line: int = 1
    speed: float | None = None
    syntax_highlight: bool = True
    path: str | None = None

    needs_bridge: ClassVar[bool] = True

    async def apply(self, ctx: PlayContext) -> None:
        if ctx.bridge is not None:
            ctx.bridge.set_content(self.code, self.path)
        else:
            surface = _surface(ctx)
            surface.text = self.code
            if self.path:
                surface.fields["path"] = self.path
        if ctx.surface is not None:
            ctx.surface.record(self.type, path=self.path, via_bridge=ctx.bridge is not None)


class CodeEditorLineHighlight(_UIUpdateBase):
    type: Literal["code_editor_line_highlight"] = "code_editor_line_highlight"
    line_numbers: list[int] = Field(default_factory=list)
    color: str = "#fde68a"

    needs_bridge: ClassVar[bool] = True

    async def apply(self, ctx: PlayContext) -> None:
        duration_ms = int(self.duration if self.duration is not None else 2000)
        if ctx.bridge is not None:
            ctx.bridge.set_line_highlight(list(self.line_numbers), self.color, duration_ms)
        else:
            surface = _surface(ctx)
            for line in self.line_numbers:
                surface.highlighted_lines[line] = self.color
        if ctx.surface is not None:
            ctx.surface.record(self.type, lines=list(self.line_numbers), via_bridge=ctx.bridge is not None)


# ----- Whiteboard -----


class WhiteboardDrawShape(_UIUpdateBase):
    type: Literal["whiteboard_draw_shape"] = "whiteboard_draw_shape"
    shape: Literal["rectangle", "circle", "line", "arrow"]
    coordinates: Box
    animated: bool = True

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        if self.animated:
            await ctx.pause_ms(250)
        surface.items.append({"kind": "shape", "shape": self.shape, **self.coordinates.model_dump(exclude_none=True)})
        surface.record(self.type, shape=self.shape)


class WhiteboardWriteText(_UIUpdateBase):
    type: Literal["whiteboard_write_text"] = "whiteboard_write_text"
    text: str
    position: Point
    handwriting: bool = False

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.items.append({"kind": "text", "text": self.text, "x": self.position.x, "y": self.position.y})
        surface.record(self.type, text=self.text)


class WhiteboardClearAnimation(_UIUpdateBase):
    type: Literal["whiteboard_clear_animation"] = "whiteboard_clear_animation"
    wipe_duration: float | None = None

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        await ctx.pause_ms(self.wipe_duration or 0)
        surface.items.clear()
        surface.record(self.type)


# ----- Email -----


class EmailTypeContent(_UIUpdateBase):
    type: Literal["email_type_content"] = "email_type_content"
    field: Literal["to", "subject", "body"]
    content: str
    speed: float | None = None

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.fields[self.field] = self.content
        surface.record(self.type, field=self.field)


class EmailSendAnimation(_UIUpdateBase):
    type: Literal["email_send_animation"] = "email_send_animation"
    success: bool
    fly_direction: Literal["up", "right"] = "up"

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.fields["sent"] = self.success
        surface.record(self.type, success=self.success)


class EmailAttachmentAdd(_UIUpdateBase):
    type: Literal["email_attachment_add"] = "email_attachment_add"
    file_name: str
    file_size: str = ""

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.items.append({"kind": "attachment", "name": self.file_name, "size": self.file_size})
        surface.record(self.type, file_name=self.file_name)


# ----- Generic -----


class Highlight(_UIUpdateBase):
    type: Literal["highlight"] = "highlight"
    color: str = "#facc15"

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.classes.add("agent-highlight")
        await ctx.pause_ms(self.duration if self.duration is not None else 1000)
        surface.classes.discard("agent-highlight")
        surface.record(self.type, color=self.color)


class Flash(_UIUpdateBase):
    type: Literal["flash"] = "flash"
    color: str = "#ffffff"

    async def apply(self, ctx: PlayContext) -> None:
        surface = _surface(ctx)
        surface.classes.add("agent-flash")
        await ctx.pause_ms(self.duration if self.duration is not None else 300)
        surface.classes.discard("agent-flash")
        surface.record(self.type, color=self.color)


UIUpdate = Annotated[
    Union[
        TodoTaskPopIn,
        TodoCheckAnimation,
        CalendarEventSlideIn,
        CalendarDateJump,
        TimerStartRipple,
        FileBrowserFolderExpand,
        FileBrowserFileHighlightPath,
        FileBrowserCreateFile,
        FileBrowserMoveAnimation,
        CodeEditorTypeCode,
        CodeEditorLineHighlight,
        WhiteboardDrawShape,
        WhiteboardWriteText,
        WhiteboardClearAnimation,
        EmailTypeContent,
        EmailSendAnimation,
        EmailAttachmentAdd,
        Highlight,
        Flash,
    ],
    Field(discriminator="type"),
]


_UI_UPDATE_ADAPTER: TypeAdapter[Any] = TypeAdapter(UIUpdate)


def parse_ui_update(raw: Any) -> UIUpdate:
    """Validate a wire descriptor into its variant; raises pydantic.ValidationError for unknown types."""

    return _UI_UPDATE_ADAPTER.validate_python(raw)
