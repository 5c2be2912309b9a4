"""
Zotero Queries

Summary-level queries against the Zotero schema: item search, library and
collection listing, and recursive collection membership. Every query is
read-only and parametrized.
"""

import re
import sqlite3
from typing import Optional, Dict, List, Any, Iterable

from .zb_types import ItemSummary, Library, Collection
from .zotero_db import run_query, run_one, sql_placeholders


DEFAULT_COLLECTION_LIMIT = 10_000

_YEAR_PATTERN = re.compile(r"(\d{4})")

# Group libraries take the group's name; the personal library is "My Library".
LIBRARY_NAME_SQL = """
COALESCE(g.name,
  CASE WHEN l.type = 'user' THEN 'My Library' ELSE 'Library ' || l.libraryID END
)"""


def extract_year(date_value: Optional[str]) -> Optional[str]:
    """Return the first 4-digit run in a date string, or None."""
    if not date_value:
        return None
    match = _YEAR_PATTERN.search(date_value)
    return match.group(1) if match else None


def parse_tags_text(tags_text: Optional[str]) -> List[str]:
    """Split a semicolon-joined tag string back into tags."""
    if not tags_text:
        return []
    return [entry.strip() for entry in tags_text.split(";") if entry.strip()]


def _summary_sql(id_source_sql: str) -> str:
    """
    Build the summary query over the item ids produced by id_source_sql.

    Attachment, note and annotation items are filtered out so that only
    top-level bibliographic items are returned. Callers append extra AND
    clauses, ORDER BY and LIMIT.
    """
    return f"""
WITH filtered_items AS (
  {id_source_sql}
),
base AS (
  SELECT i.itemID, i.key, i.libraryID, i.itemTypeID, i.dateAdded, i.dateModified
  FROM items i
  JOIN filtered_items fi ON fi.itemID = i.itemID
),
field_values AS (
  SELECT id.itemID,
    MAX(CASE WHEN f.fieldName = 'title' THEN v.value END) AS title,
    MAX(CASE WHEN f.fieldName = 'date' THEN v.value END) AS date,
    MAX(CASE WHEN f.fieldName = 'DOI' THEN v.value END) AS doi
  FROM itemData id
  JOIN fields f ON f.fieldID = id.fieldID
  JOIN itemDataValues v ON v.valueID = id.valueID
  GROUP BY id.itemID
),
creator_values AS (
  SELECT ic.itemID,
    GROUP_CONCAT(
      TRIM(COALESCE(c.lastName, '') ||
        CASE WHEN c.firstName IS NOT NULL AND c.firstName != '' THEN ', ' || c.firstName ELSE '' END),
      '; '
    ) AS creatorsText
  FROM itemCreators ic
  JOIN creators c ON c.creatorID = ic.creatorID
  GROUP BY ic.itemID
),
tag_values AS (
  SELECT it.itemID, GROUP_CONCAT(t.name, '; ') AS tagsText
  FROM itemTags it
  JOIN tags t ON t.tagID = it.tagID
  GROUP BY it.itemID
),
attachment_values AS (
  SELECT ia.parentItemID AS itemID,
    SUM(CASE
          WHEN LOWER(COALESCE(ia.contentType, '')) LIKE '%pdf%'
            OR LOWER(COALESCE(ia.path, '')) LIKE '%.pdf'
          THEN 1 ELSE 0
        END) AS pdfCount
  FROM itemAttachments ia
  WHERE ia.parentItemID IS NOT NULL
  GROUP BY ia.parentItemID
),
note_targets AS (
  SELECT fi.itemID AS rootItemID, fi.itemID AS targetItemID
  FROM filtered_items fi
  UNION ALL
  SELECT ia.parentItemID AS rootItemID, ia.itemID AS targetItemID
  FROM itemAttachments ia
  WHERE ia.parentItemID IS NOT NULL
),
note_values AS (
  SELECT nt.rootItemID AS itemID, COUNT(DISTINCT n.itemID) AS noteCount
  FROM note_targets nt
  JOIN itemNotes n ON n.parentItemID = nt.targetItemID
  GROUP BY nt.rootItemID
),
library_names AS (
  SELECT l.libraryID, {LIBRARY_NAME_SQL} AS libraryName
  FROM libraries l
  LEFT JOIN groups g ON g.libraryID = l.libraryID
)
SELECT
  b.itemID,
  b.key,
  b.libraryID,
  ln.libraryName,
  it.typeName AS itemType,
  fv.title,
  fv.date,
  fv.doi,
  b.dateAdded,
  b.dateModified,
  cv.creatorsText,
  tv.tagsText,
  COALESCE(av.pdfCount, 0) AS pdfCount,
  COALESCE(nv.noteCount, 0) AS noteCount
FROM base b
JOIN itemTypes it ON it.itemTypeID = b.itemTypeID
LEFT JOIN field_values fv ON fv.itemID = b.itemID
LEFT JOIN creator_values cv ON cv.itemID = b.itemID
LEFT JOIN tag_values tv ON tv.itemID = b.itemID
LEFT JOIN attachment_values av ON av.itemID = b.itemID
LEFT JOIN note_values nv ON nv.itemID = b.itemID
LEFT JOIN library_names ln ON ln.libraryID = b.libraryID
WHERE it.typeName NOT IN ('attachment', 'note', 'annotation')
"""


def _map_summary(row: Dict[str, Any]) -> ItemSummary:
    pdf_count = int(row.get("pdfCount") or 0)
    title = (row.get("title") or "").strip()
    date = row.get("date")
    return ItemSummary(
        item_id=int(row["itemID"]),
        key=str(row["key"]),
        library_id=int(row["libraryID"]),
        library_name=row.get("libraryName") or f"Library {row['libraryID']}",
        item_type=str(row["itemType"]),
        title=title or "Untitled",
        creators_text=(row.get("creatorsText") or "").strip(),
        pdf_count=pdf_count,
        has_pdf=pdf_count > 0,
        note_count=int(row.get("noteCount") or 0),
        date=date,
        year=extract_year(date),
        date_added=row.get("dateAdded"),
        date_modified=row.get("dateModified"),
        doi=row.get("doi"),
        tags_text=row.get("tagsText"),
    )


def search_items(conn: sqlite3.Connection, search_text: str, limit: int) -> List[ItemSummary]:
    """
    Search top-level items by title, creators, date, DOI and tags.

    Matching is a case-insensitive substring test on each field; an empty
    query matches everything.

    Args:
        conn: Open database connection
        search_text: Free-text query
        limit: Maximum number of results

    Returns:
        Matching summaries, most recently modified first
    """
    normalized = (search_text or "").strip()
    like = f"%{normalized.lower()}%"
    sql = _summary_sql("SELECT itemID FROM items") + """
AND (
  ? = ''
  OR LOWER(COALESCE(fv.title, '')) LIKE ?
  OR LOWER(COALESCE(cv.creatorsText, '')) LIKE ?
  OR LOWER(COALESCE(fv.date, '')) LIKE ?
  OR LOWER(COALESCE(fv.doi, '')) LIKE ?
  OR LOWER(COALESCE(tv.tagsText, '')) LIKE ?
)
ORDER BY b.dateModified DESC
LIMIT ?
"""
    rows = run_query(conn, sql, [normalized, like, like, like, like, like, limit])
    return [_map_summary(row) for row in rows]


def get_item_summaries_by_ids(conn: sqlite3.Connection, item_ids: List[int],
                              limit: int = DEFAULT_COLLECTION_LIMIT) -> List[ItemSummary]:
    if not item_ids:
        return []
    placeholders = sql_placeholders(len(item_ids))
    sql = _summary_sql(f"SELECT itemID FROM items WHERE itemID IN ({placeholders})") + """
ORDER BY b.dateModified DESC
LIMIT ?
"""
    rows = run_query(conn, sql, [*item_ids, limit])
    return [_map_summary(row) for row in rows]


def get_item_summaries_by_ids_unbounded(conn: sqlite3.Connection, item_ids: List[int]) -> List[ItemSummary]:
    if not item_ids:
        return []
    placeholders = sql_placeholders(len(item_ids))
    sql = _summary_sql(f"SELECT itemID FROM items WHERE itemID IN ({placeholders})") + """
ORDER BY b.dateModified DESC
"""
    rows = run_query(conn, sql, item_ids)
    return [_map_summary(row) for row in rows]


def get_item_summaries_by_keys(conn: sqlite3.Connection, keys: Iterable[str]) -> List[ItemSummary]:
    """
    Resolve item keys (e.g. "ABCD1234") to summaries.

    Unknown keys are silently dropped; the result keeps the order of keys.
    """
    keys = [key.strip() for key in keys if key and key.strip()]
    if not keys:
        return []
    rows = run_query(
        conn,
        f"SELECT itemID, key FROM items WHERE key IN ({sql_placeholders(len(keys))})",
        keys,
    )
    summaries = get_item_summaries_by_ids_unbounded(conn, [int(row["itemID"]) for row in rows])
    by_key = {summary.key: summary for summary in summaries}
    return [by_key[key] for key in keys if key in by_key]


def get_libraries(conn: sqlite3.Connection) -> List[Library]:
    """List libraries, the personal library first, then by name."""
    rows = run_query(conn, f"""
SELECT l.libraryID, l.type AS libraryType, {LIBRARY_NAME_SQL} AS libraryName
FROM libraries l
LEFT JOIN groups g ON g.libraryID = l.libraryID
ORDER BY CASE WHEN l.type = 'user' THEN 0 ELSE 1 END, libraryName
""")
    return [
        Library(
            library_id=int(row["libraryID"]),
            library_type=str(row["libraryType"]),
            library_name=str(row["libraryName"]),
        )
        for row in rows
    ]


def _map_collection(row: Dict[str, Any]) -> Collection:
    parent_id = row["parentCollectionID"]
    return Collection(
        collection_id=int(row["collectionID"]),
        key=str(row["key"]),
        library_id=int(row["libraryID"]),
        collection_name=str(row["collectionName"]),
        parent_collection_id=None if parent_id is None else int(parent_id),
    )


def get_collections_for_library(conn: sqlite3.Connection, library_id: int) -> List[Collection]:
    rows = run_query(conn, """
SELECT collectionID, key, libraryID, collectionName, parentCollectionID
FROM collections
WHERE libraryID = ?
ORDER BY collectionName
""", [library_id])
    return [_map_collection(row) for row in rows]


def get_collection(conn: sqlite3.Connection, collection_id: int) -> Optional[Collection]:
    row = run_one(conn, """
SELECT collectionID, key, libraryID, collectionName, parentCollectionID
FROM collections
WHERE collectionID = ?
""", [collection_id])
    return _map_collection(row) if row else None


def get_collection_item_summaries(conn: sqlite3.Connection, collection_id: int,
                                  limit: int = DEFAULT_COLLECTION_LIMIT) -> List[ItemSummary]:
    """
    Get summaries for a collection and all of its descendant collections.

    Items appearing in several of those collections are returned once.

    Args:
        conn: Open database connection
        collection_id: Root collection id
        limit: Maximum number of results

    Returns:
        Item summaries, most recently modified first
    """
    rows = run_query(conn, """
WITH RECURSIVE descendants(collectionID) AS (
  SELECT ?
  UNION ALL
  SELECT c.collectionID
  FROM collections c
  JOIN descendants d ON c.parentCollectionID = d.collectionID
)
SELECT DISTINCT ci.itemID
FROM collectionItems ci
JOIN descendants d ON d.collectionID = ci.collectionID
""", [collection_id])
    return get_item_summaries_by_ids(conn, [int(row["itemID"]) for row in rows], limit)


def get_direct_collection_item_summaries(conn: sqlite3.Connection, collection_id: int,
                                         limit: int = DEFAULT_COLLECTION_LIMIT) -> List[ItemSummary]:
    """Get summaries for items placed directly in a collection (no descendants)."""
    rows = run_query(
        conn,
        "SELECT DISTINCT itemID FROM collectionItems WHERE collectionID = ?",
        [collection_id],
    )
    return get_item_summaries_by_ids(conn, [int(row["itemID"]) for row in rows], limit)
