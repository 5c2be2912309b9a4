"""
Zotero Item Loader

Builds one fully populated ZoteroItem (fields, creators, tags, collections,
attachments, notes and annotations) from the normalized Zotero schema.
"""

import re
import sqlite3
from typing import Optional, Dict, List

from .zb_errors import NotFoundError
from .zb_types import (
    ZoteroItem, Creator, Attachment, Note, Annotation, ParentRef,
    PARENT_ITEM, PARENT_ATTACHMENT,
)
from .zotero_db import run_query, run_one, sql_placeholders
from .zotero_queries import extract_year

STORAGE_PREFIX = "storage:"
UNKNOWN_CREATOR = "Unknown Creator"


class ItemFields:
    """
    Typed view over an item's itemData rows.

    Zotero stores metadata as (field name, value) pairs. Repeated values for
    the same field are joined with "; " rather than overwritten.
    """

    def __init__(self, rows: List[Dict]):
        self._values: Dict[str, str] = {}
        for row in rows:
            name = str(row["fieldName"])
            value = str(row["value"])
            if self._values.get(name):
                self._values[name] = f"{self._values[name]}; {value}"
            else:
                self._values[name] = value

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    @property
    def title(self) -> Optional[str]:
        return self.get("title")

    @property
    def date(self) -> Optional[str]:
        return self.get("date")

    @property
    def doi(self) -> Optional[str]:
        return self.get("DOI")

    @property
    def abstract(self) -> Optional[str]:
        return self.get("abstractNote")


def creator_display_name(name: Optional[str], first_name: Optional[str], last_name: Optional[str]) -> str:
    """
    Build "Last, First" (or the single-field name) for a creator.

    Returns:
        Display name, or "Unknown Creator" when every part is blank
    """
    if name and name.strip():
        return name.strip()
    parts = [part.strip() for part in (last_name, first_name) if part and part.strip()]
    return ", ".join(parts) or UNKNOWN_CREATOR


def derive_attachment_filename(attachment_path: Optional[str], key: str) -> str:
    """Last path segment of an attachment path, falling back to "<key>.pdf"."""
    if not attachment_path:
        return f"{key}.pdf"
    without_prefix = attachment_path
    if without_prefix.startswith(STORAGE_PREFIX):
        without_prefix = without_prefix[len(STORAGE_PREFIX):]
    trimmed = without_prefix.lstrip("/\\")
    base = re.split(r"[/\\]", trimmed)[-1]
    return base or f"{key}.pdf"


def _load_fields(conn: sqlite3.Connection, item_id: int) -> ItemFields:
    rows = run_query(conn, """
SELECT f.fieldName, v.value
FROM itemData id
JOIN fields f ON f.fieldID = id.fieldID
JOIN itemDataValues v ON v.valueID = id.valueID
WHERE id.itemID = ?
""", [item_id])
    return ItemFields(rows)


def _load_creators(conn: sqlite3.Connection, item_id: int) -> List[Creator]:
    rows = run_query(conn, """
SELECT ic.orderIndex, ct.creatorType, c.firstName, c.lastName, c.fieldMode
FROM itemCreators ic
JOIN creators c ON c.creatorID = ic.creatorID
LEFT JOIN creatorTypes ct ON ct.creatorTypeID = ic.creatorTypeID
WHERE ic.itemID = ?
ORDER BY ic.orderIndex ASC
""", [item_id])

    creators = []
    for row in rows:
        # fieldMode 1: the whole name lives in lastName
        single_field = int(row["fieldMode"] or 0) == 1
        name = row["lastName"] if single_field else None
        creators.append(Creator(
            order_index=int(row["orderIndex"]),
            display_name=creator_display_name(name, row["firstName"], row["lastName"]),
            first_name=row["firstName"],
            last_name=row["lastName"],
            name=name,
            creator_type=row["creatorType"],
        ))
    return creators


def _load_tags(conn: sqlite3.Connection, item_id: int) -> List[str]:
    rows = run_query(conn, """
SELECT t.name
FROM itemTags it
JOIN tags t ON t.tagID = it.tagID
WHERE it.itemID = ?
ORDER BY t.name
""", [item_id])
    return [str(row["name"]) for row in rows]


def _load_collection_names(conn: sqlite3.Connection, item_id: int) -> List[str]:
    rows = run_query(conn, """
SELECT c.collectionName
FROM collectionItems ci
JOIN collections c ON c.collectionID = ci.collectionID
WHERE ci.itemID = ?
ORDER BY c.collectionName
""", [item_id])
    return [str(row["collectionName"]) for row in rows]


def _load_attachments(conn: sqlite3.Connection, item_id: int) -> List[Attachment]:
    rows = run_query(conn, """
SELECT ia.itemID, ai.key, tf.value AS title, ia.contentType, ia.linkMode, ia.path
FROM itemAttachments ia
JOIN items ai ON ai.itemID = ia.itemID
LEFT JOIN (
  SELECT id.itemID, v.value
  FROM itemData id
  JOIN fields f ON f.fieldID = id.fieldID
  JOIN itemDataValues v ON v.valueID = id.valueID
  WHERE f.fieldName = 'title'
) tf ON tf.itemID = ia.itemID
WHERE ia.parentItemID = ?
ORDER BY ia.itemID
""", [item_id])

    attachments = []
    for row in rows:
        key = str(row["key"])
        content_type = row["contentType"]
        filename = derive_attachment_filename(row["path"], key)
        is_pdf = ("pdf" in (content_type or "").lower()) or filename.lower().endswith(".pdf")
        attachments.append(Attachment(
            item_id=int(row["itemID"]),
            key=key,
            filename=filename,
            is_pdf=is_pdf,
            title=row["title"],
            content_type=content_type,
            link_mode=None if row["linkMode"] is None else int(row["linkMode"]),
            path=row["path"],
        ))
    return attachments


def _note_from_row(row: Dict, kind: str) -> Note:
    return Note(
        item_id=int(row["itemID"]),
        parent=ParentRef(kind=kind, item_id=int(row["parentItemID"])),
        title=row["title"],
        note_html=row["note"] or "",
    )


def _load_notes(conn: sqlite3.Connection, item_id: int, attachment_ids: List[int]) -> List[Note]:
    """Notes on the item itself, followed by notes on any of its attachments."""
    rows = run_query(conn, """
SELECT itemID, parentItemID, title, note
FROM itemNotes
WHERE parentItemID = ?
ORDER BY itemID
""", [item_id])
    notes = [_note_from_row(row, PARENT_ITEM) for row in rows]

    if attachment_ids:
        rows = run_query(conn, f"""
SELECT itemID, parentItemID, title, note
FROM itemNotes
WHERE parentItemID IN ({sql_placeholders(len(attachment_ids))})
ORDER BY itemID
""", attachment_ids)
        notes.extend(_note_from_row(row, PARENT_ATTACHMENT) for row in rows)

    return notes


def _load_annotations(conn: sqlite3.Connection, attachment_ids: List[int]) -> List[Annotation]:
    if not attachment_ids:
        return []
    # sortIndex is text ("00005|001000|00100"), compared lexicographically
    rows = run_query(conn, f"""
SELECT itemID, parentItemID, type, text, comment, color, pageLabel, sortIndex, position
FROM itemAnnotations
WHERE parentItemID IN ({sql_placeholders(len(attachment_ids))})
ORDER BY parentItemID ASC, sortIndex ASC, itemID ASC
""", attachment_ids)
    return [
        Annotation(
            item_id=int(row["itemID"]),
            parent_item_id=int(row["parentItemID"]),
            type=None if row["type"] is None else str(row["type"]),
            text=row["text"],
            comment=row["comment"],
            color=row["color"],
            page_label=row["pageLabel"],
            sort_index=None if row["sortIndex"] is None else str(row["sortIndex"]),
            position=row["position"],
        )
        for row in rows
    ]


def get_item_export_data(conn: sqlite3.Connection, item_id: int) -> ZoteroItem:
    """
    Load a complete item for export.

    Args:
        conn: Open database connection
        item_id: Zotero itemID

    Returns:
        ZoteroItem with every child collection populated

    Raises:
        NotFoundError: If there is no items row for item_id
    """
    base = run_one(conn, """
SELECT i.itemID, i.key, i.libraryID, it.typeName AS itemType, i.dateAdded, i.dateModified,
  COALESCE(g.name,
    CASE WHEN l.type = 'user' THEN 'My Library' ELSE 'Library ' || i.libraryID END
  ) AS libraryName
FROM items i
JOIN itemTypes it ON it.itemTypeID = i.itemTypeID
LEFT JOIN libraries l ON l.libraryID = i.libraryID
LEFT JOIN groups g ON g.libraryID = i.libraryID
WHERE i.itemID = ?
""", [item_id])

    if not base:
        raise NotFoundError(item_id)

    fields = _load_fields(conn, item_id)
    attachments = _load_attachments(conn, item_id)
    attachment_ids = [attachment.item_id for attachment in attachments]
    title = fields.title

    return ZoteroItem(
        item_id=int(base["itemID"]),
        key=str(base["key"]),
        library_id=int(base["libraryID"]),
        library_name=base["libraryName"] or f"Library {base['libraryID']}",
        item_type=str(base["itemType"]),
        title=title if title and title.strip() else "Untitled",
        creators=_load_creators(conn, item_id),
        year=extract_year(fields.date),
        date=fields.date,
        publication_title=fields.get("publicationTitle"),
        volume=fields.get("volume"),
        issue=fields.get("issue"),
        pages=fields.get("pages"),
        publisher=fields.get("publisher"),
        place=fields.get("place"),
        language=fields.get("language"),
        doi=fields.doi,
        url=fields.get("url"),
        abstract=fields.abstract,
        extra=fields.get("extra"),
        tags=_load_tags(conn, item_id),
        collections=_load_collection_names(conn, item_id),
        date_added=base["dateAdded"],
        date_modified=base["dateModified"],
        attachments=attachments,
        notes=_load_notes(conn, item_id, attachment_ids),
        annotations=_load_annotations(conn, attachment_ids),
    )
