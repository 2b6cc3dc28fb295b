from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .ui_updates import UIUpdate


class ToolResult(BaseModel):
    """
    Outcome of one tool execution.

    `success=False` carries `error` and no `data`; `success=True` never carries `error`.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: Any = None
    error: str | None = None
    ui_update: UIUpdate | None = Field(default=None, alias="uiUpdate")
    multiple_updates: list[UIUpdate] | None = Field(default=None, alias="multipleUpdates")

    @model_validator(mode="after")
    def _validate_outcome(self) -> "ToolResult":
        if self.success and self.error is not None:
            raise ValueError("a successful tool result cannot carry an error.")
        if not self.success:
            if self.data is not None:
                raise ValueError("a failed tool result cannot carry data.")
            if not self.error:
                raise ValueError("a failed tool result must carry an error message.")
        return self

    @classmethod
    def ok(cls, data: Any = None, *, ui_update: UIUpdate | None = None, multiple_updates: list[UIUpdate] | None = None) -> "ToolResult":
        return cls(success=True, data=data, ui_update=ui_update, multiple_updates=multiple_updates)

    @classmethod
    def fail(cls, error: str, *, ui_update: UIUpdate | None = None) -> "ToolResult":
        return cls(success=False, error=error or "Tool failed", ui_update=ui_update)

    def ui_updates(self) -> list[UIUpdate]:
        """All attached descriptors in play order."""

        out: list[UIUpdate] = []
        if self.ui_update is not None:
            out.append(self.ui_update)
        out.extend(self.multiple_updates or [])
        return out

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
