from __future__ import annotations

from typing import Any, Optional, Tuple


def parse_entry_path(value: Any) -> Optional[Tuple[int, ...]]:
    """Return the index path for ``"0.2.1"`` style values, ``None`` if malformed."""
    if value is None:
        return None
    text = str(value).strip().strip(".")
    if not text:
        return None
    parts = text.split(".")
    if not all(part.isdigit() for part in parts):
        return None
    return tuple(int(part) for part in parts)


def format_entry_path(path: Tuple[int, ...]) -> str:
    return ".".join(str(index) for index in path)


def normalize_document_locator(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().replace("\\", "/").strip("/")
    return text or None
