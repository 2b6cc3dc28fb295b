from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..ids import now_ts_ms
from ..models.tool_result import ToolResult
from ..models.ui_updates import EmailAttachmentAdd, EmailSendAnimation, EmailTypeContent
from .filesystem import JsonFile, VirtualFileSystem, VirtualFileSystemError, surface_failures
from .registry import FunctionTool, define_tool

logger = logging.getLogger(__name__)

APP_ID = "email"
DEFAULT_PATH = "/email/draft.json"
OUTBOX_PATH = "/email/outbox.json"
TYPING_SPEED = 40
FIELDS = ("to", "subject", "body")

# Receives `{to, subject, text, html?}`; raising means the message was not sent.
EmailSender = Callable[[dict[str, str]], Awaitable[None]]


def _empty_draft() -> dict[str, str]:
    return {"to": "", "subject": "", "body": ""}


def _draft_from(data: dict[str, Any]) -> dict[str, str]:
    draft = {key: data[key] if isinstance(data.get(key), str) else "" for key in FIELDS}
    if isinstance(data.get("html"), str):
        draft["html"] = data["html"]
    return draft


def outbox_sender(fs: VirtualFileSystem, path: str = OUTBOX_PATH) -> EmailSender:
    """Sender that appends each message to a JSON list in the virtual file system."""

    outbox = JsonFile(fs, path)

    async def send(message: dict[str, str]) -> None:
        sent = outbox.load_records() or []
        sent.append({**message, "sentAt": now_ts_ms()})
        outbox.save(sent)

    return send


def email_tools(
    fs: VirtualFileSystem,
    target_id: str,
    *,
    path: str = DEFAULT_PATH,
    send: EmailSender | None = None,
) -> list[FunctionTool]:
    store = JsonFile(fs, path)
    deliver = send or outbox_sender(fs)

    def animation(success: bool) -> EmailSendAnimation:
        return EmailSendAnimation(target_id=target_id, success=success, fly_direction="up")

    @surface_failures
    async def compose(params: dict[str, Any]) -> ToolResult:
        draft = _draft_from(store.load_object())
        typed: list[Any] = []
        for key in FIELDS:
            if params.get(key) is None:
                continue
            draft[key] = str(params[key])
            typed.append(EmailTypeContent(target_id=target_id, field=key, content=draft[key], speed=TYPING_SPEED))
        if params.get("html") is not None:
            draft["html"] = str(params["html"])
        store.save(draft)

        if params.get("animated") is False or not typed:
            return ToolResult.ok(draft)
        if len(typed) == 1:
            return ToolResult.ok(draft, ui_update=typed[0])
        return ToolResult.ok(draft, multiple_updates=typed)

    @surface_failures
    async def send_draft(params: dict[str, Any]) -> ToolResult:
        try:
            data = store.read()
        except VirtualFileSystemError:
            return ToolResult.fail("No draft to send")
        except ValueError:
            data = {}
        draft = _draft_from(data if isinstance(data, dict) else {})
        to = draft["to"].strip()
        if not to:
            return ToolResult.fail("Recipient (to) is required")

        message = {"to": to, "subject": draft["subject"].strip(), "text": draft["body"].strip()}
        html = draft.get("html", "").strip()
        if html:
            message["html"] = html
        try:
            await deliver(message)
        except Exception as e:  # noqa: BLE001
            logger.warning("email send failed: %s", e)
            return ToolResult.fail(str(e) or "Failed to send", ui_update=animation(False))
        store.save(_empty_draft())
        return ToolResult.ok({}, ui_update=animation(True))

    async def add_attachment(params: dict[str, Any]) -> ToolResult:
        file_name = str(params.get("fileName") or "").strip()
        if not file_name:
            return ToolResult.fail("fileName is required")
        file_size = str(params.get("fileSize") or "").strip() or "-"
        return ToolResult.ok(
            {"fileName": file_name, "fileSize": file_size},
            ui_update=EmailAttachmentAdd(target_id=target_id, file_name=file_name, file_size=file_size),
        )

    @surface_failures
    async def clear_draft(params: dict[str, Any]) -> ToolResult:
        store.save(_empty_draft())
        return ToolResult.ok({"cleared": True})

    return [
        define_tool(
            name="email_compose",
            description="Compose or update an email draft (to, subject, body)",
            app_id=APP_ID,
            properties={
                "to": {"type": "string", "description": "Recipient email address"},
                "subject": {"type": "string", "description": "Email subject"},
                "body": {"type": "string", "description": "Email body content"},
                "html": {"type": "string", "description": "Optional HTML version of the body, sent alongside the plain text"},
                "animated": {"type": "boolean", "description": "Use typewriter effect (default: true)"},
            },
            handler=compose,
        ),
        define_tool(
            name="email_send",
            description="Send the current email draft",
            app_id=APP_ID,
            properties={},
            handler=send_draft,
        ),
        define_tool(
            name="email_add_attachment",
            description="Add an attachment to the draft (visual indicator only)",
            app_id=APP_ID,
            properties={
                "fileName": {"type": "string", "description": "Attachment file name"},
                "fileSize": {"type": "string", "description": "File size (e.g. 1.2 MB)"},
            },
            required=["fileName"],
            handler=add_attachment,
        ),
        define_tool(
            name="email_clear_draft",
            description="Discard the current email draft (to, subject and body)",
            app_id=APP_ID,
            properties={},
            handler=clear_draft,
        ),
    ]
