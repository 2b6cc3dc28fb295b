from __future__ import annotations

from .executor import UIUpdateExecutor
from .surfaces import CodeEditorBridge, PlayContext, SurfaceRegistry, UISurface, wait_for_bridge

__all__ = [
    "CodeEditorBridge",
    "PlayContext",
    "SurfaceRegistry",
    "UISurface",
    "UIUpdateExecutor",
    "wait_for_bridge",
]
