"""
Filesystem naming for exported items.

Pure functions turning item keys and titles into safe path segments, plus the
collision-suffix probe used when copying attachments.
"""

import os
import re
import unicodedata
from pathlib import Path
from typing import Optional, Union

from .zb_types import (
    ItemOutputPaths, LAYOUT_FLAT, LAYOUT_ITEM_FOLDER, LAYOUT_YEAR_ITEM,
)

MAX_SEGMENT_LENGTH = 80
ITEM_MARKDOWN_NAME = "item.md"


def sanitize_segment(text: str) -> str:
    """
    Make a string safe to use as a single path segment.

    Accents are decomposed and dropped, anything outside letters, digits,
    ".", "_", "-" and whitespace is removed, whitespace runs become single
    hyphens, and leading/trailing hyphens and dots are stripped.

    Args:
        text: Arbitrary input text

    Returns:
        Sanitized segment of at most MAX_SEGMENT_LENGTH characters (may be empty)
    """
    normalized = unicodedata.normalize("NFKD", text or "")
    without_marks = "".join(c for c in normalized if not unicodedata.category(c).startswith("M"))
    cleaned = re.sub(r"[^A-Za-z0-9._\-\s]", "", without_marks).strip()
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned)
    cleaned = cleaned.strip("-.")
    # Truncation can expose a trailing separator again
    return cleaned[:MAX_SEGMENT_LENGTH].strip("-.")


def build_item_slug(item) -> str:
    """Slug of the form "<key>-<sanitized title>" for anything with .key and .title."""
    title_part = sanitize_segment(item.title or "") or "untitled"
    return f"{item.key}-{title_part}"[:MAX_SEGMENT_LENGTH + len(item.key) + 1]


def sanitize_filename(filename: str) -> str:
    """
    Sanitize the base name of a file and keep its extension.

    Example:
        "paper (final).pdf" -> "paper-final.pdf"
    """
    stem, ext = os.path.splitext(filename or "")
    name = sanitize_segment(stem) or "attachment"
    ext = re.sub(r"[^A-Za-z0-9.]", "", ext)
    return f"{name}{ext}"


def resolve_item_output_paths(output_root: Union[str, Path], layout_mode: str,
                              slug: str, year: Optional[str] = None) -> ItemOutputPaths:
    """
    Decide where an item's markdown and attachments go.

    Layouts:
        flat:        <root>/<slug>.md, attachments prefixed "<slug>__"
        item-folder: <root>/<slug>/item.md
        year-item:   <root>/<year or unknown-year>/<slug>/item.md

    Raises:
        ValueError: If layout_mode is not one of the known layouts
    """
    root = Path(output_root)

    if layout_mode == LAYOUT_FLAT:
        return ItemOutputPaths(
            markdown_path=root / f"{slug}.md",
            flat_prefix=f"{slug}__",
        )

    if layout_mode == LAYOUT_YEAR_ITEM:
        year_folder = sanitize_segment(year or "unknown-year") or "unknown-year"
        item_folder = root / year_folder / slug
        return ItemOutputPaths(markdown_path=item_folder / ITEM_MARKDOWN_NAME, item_folder=item_folder)

    if layout_mode == LAYOUT_ITEM_FOLDER:
        item_folder = root / slug
        return ItemOutputPaths(markdown_path=item_folder / ITEM_MARKDOWN_NAME, item_folder=item_folder)

    raise ValueError(f"Unknown layout mode: {layout_mode!r}")


def make_unique_file_path(target: Union[str, Path]) -> Path:
    """
    Return target, or the first free "<name>-N<ext>" sibling (N starting at 2).

    Check-then-use: only safe with a single writer in the output directory.
    """
    target = Path(target)
    if not target.exists():
        return target

    suffix = 2
    while True:
        candidate = target.with_name(f"{target.stem}-{suffix}{target.suffix}")
        if not candidate.exists():
            return candidate
        suffix += 1
