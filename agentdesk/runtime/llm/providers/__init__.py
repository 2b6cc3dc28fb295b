from __future__ import annotations

from .base import PreparedRequest
from .gemini import GeminiAdapter, build_generate_content_url, function_declaration_to_gemini

__all__ = ["GeminiAdapter", "PreparedRequest", "build_generate_content_url", "function_declaration_to_gemini"]
