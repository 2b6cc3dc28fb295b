from __future__ import annotations

from collections.abc import Iterable


def require_text(value: object, *, field_name: str) -> str:
    """Trimmed, non-empty string or ValueError naming the field."""

    text = value.strip() if isinstance(value, str) else None
    if text is None:
        raise ValueError(f"{field_name} must be a string.")
    if text == "":
        raise ValueError(f"{field_name} must be a non-empty string.")
    return text


def optional_text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def unique_texts(values: Iterable[object] | None) -> list[str]:
    # First occurrence wins; blanks and non-strings drop out.
    stripped = (optional_text(v) for v in values or ())
    return list(dict.fromkeys(t for t in stripped if t))
