"""
Markdown document rendering for exported items.

One document per item: YAML frontmatter with the item's metadata, a title
heading, then numbered "Highlights" and "Notes" sections.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

import yaml

from .zb_types import ZoteroItem, Attachment, Annotation, Note

EMPTY_SECTION = "None"
EMPTY_NOTE_BODY = "Empty note content."


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-02-10T12:00:00.000Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_highlights(highlights: List[Annotation]) -> str:
    if not highlights:
        return f"{EMPTY_SECTION}\n"

    parts = []
    for index, highlight in enumerate(highlights, 1):
        parts.append(f"### Highlight {index}")
        if highlight.page_label:
            parts.append(f"- Page: {highlight.page_label}")
        if highlight.color:
            parts.append(f"- Color: {highlight.color}")
        if highlight.text and highlight.text.strip():
            parts.append(f"> {highlight.text.strip()}")
        if highlight.comment and highlight.comment.strip():
            parts.append(f"Comment: {highlight.comment.strip()}")
        parts.append("")

    return "\n".join(parts).strip() + "\n"


def render_notes(notes: List[Note]) -> str:
    if not notes:
        return f"{EMPTY_SECTION}\n"

    parts = []
    for index, note in enumerate(notes, 1):
        parts.append(f"### Note {index}")
        if note.title and note.title.strip():
            parts.append(f"Title: {note.title.strip()}")
            parts.append("")
        body = (note.note_markdown or "").strip()
        parts.append(body or EMPTY_NOTE_BODY)
        parts.append("")

    return "\n".join(parts).strip() + "\n"


def build_frontmatter(item: ZoteroItem, exported_filenames: List[str], exported_at: datetime) -> Dict[str, Any]:
    """Metadata header fields, in output order."""
    return {
        "zotero_key": item.key,
        "item_id": item.item_id,
        "library_id": item.library_id,
        "library_name": item.library_name,
        "item_type": item.item_type,
        "title": item.title,
        "creators": [creator.display_name for creator in item.creators],
        "year": item.year,
        "date": item.date,
        "publication_title": item.publication_title,
        "volume": item.volume,
        "issue": item.issue,
        "pages": item.pages,
        "publisher": item.publisher,
        "place": item.place,
        "language": item.language,
        "doi": item.doi,
        "url": item.url,
        "tags": list(item.tags),
        "collections": list(item.collections),
        "abstract": item.abstract,
        "date_added": item.date_added,
        "date_modified": item.date_modified,
        "extra": item.extra,
        "attachments": list(exported_filenames),
        "exported_at": format_timestamp(exported_at),
    }


def build_markdown(
    item: ZoteroItem,
    selected_attachments: List[Attachment],
    exported_filenames: List[str],
    highlights: List[Annotation],
    notes: List[Note],
    exported_at: datetime,
) -> str:
    """
    Render the markdown document for one item.

    Notes must already carry their converted note_markdown; this function does
    no HTML handling of its own.

    Args:
        item: Loaded item
        selected_attachments: Attachments chosen for export
        exported_filenames: Basenames of the attachment files actually copied
        highlights: Annotations on the selected attachments
        notes: Notes on the item or on the selected attachments
        exported_at: Export timestamp written to the frontmatter

    Returns:
        Complete document text
    """
    frontmatter = build_frontmatter(item, exported_filenames, exported_at)
    yaml_str = yaml.dump(
        frontmatter,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=120,
    ).strip()

    title = item.title or "Untitled"

    return (
        f"---\n{yaml_str}\n---\n\n"
        f"# {title}\n\n"
        f"## Highlights\n\n{render_highlights(highlights)}\n"
        f"## Notes\n\n{render_notes(notes)}"
    )
