"""Shared pytest fixtures for zotero_bundle tests."""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from zotero_bundle.zb_policies import AutomaticPolicy
from zotero_bundle.zb_export import ZoteroBundleExporter

FIXED_NOW = datetime(2026, 2, 10, 12, 0, 0, tzinfo=timezone.utc)

SCHEMA = """
CREATE TABLE libraries (libraryID INTEGER PRIMARY KEY, type TEXT);
CREATE TABLE groups (groupID INTEGER PRIMARY KEY, libraryID INTEGER, name TEXT);
CREATE TABLE itemTypes (itemTypeID INTEGER PRIMARY KEY, typeName TEXT);
CREATE TABLE items (
  itemID INTEGER PRIMARY KEY,
  itemTypeID INTEGER,
  libraryID INTEGER,
  key TEXT,
  parentItemID INTEGER,
  dateAdded TEXT,
  dateModified TEXT
);
CREATE TABLE fields (fieldID INTEGER PRIMARY KEY, fieldName TEXT);
CREATE TABLE itemDataValues (valueID INTEGER PRIMARY KEY, value TEXT);
CREATE TABLE itemData (itemID INTEGER, fieldID INTEGER, valueID INTEGER);
CREATE TABLE creators (creatorID INTEGER PRIMARY KEY, firstName TEXT, lastName TEXT, fieldMode INT);
CREATE TABLE creatorTypes (creatorTypeID INTEGER PRIMARY KEY, creatorType TEXT);
CREATE TABLE itemCreators (itemID INTEGER, creatorID INTEGER, creatorTypeID INTEGER, orderIndex INTEGER);
CREATE TABLE tags (tagID INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE itemTags (itemID INTEGER, tagID INTEGER);
CREATE TABLE collections (
  collectionID INTEGER PRIMARY KEY,
  key TEXT,
  libraryID INTEGER,
  collectionName TEXT,
  parentCollectionID INTEGER
);
CREATE TABLE collectionItems (collectionID INTEGER, itemID INTEGER);
CREATE TABLE itemAttachments (
  itemID INTEGER PRIMARY KEY,
  parentItemID INTEGER,
  contentType TEXT,
  linkMode INTEGER,
  path TEXT
);
CREATE TABLE itemNotes (
  itemID INTEGER PRIMARY KEY,
  parentItemID INTEGER,
  title TEXT,
  note TEXT
);
CREATE TABLE itemAnnotations (
  itemID INTEGER PRIMARY KEY,
  parentItemID INTEGER,
  type TEXT,
  text TEXT,
  comment TEXT,
  color TEXT,
  pageLabel TEXT,
  sortIndex TEXT,
  position TEXT
);
"""

# Items:
#   1 ITEM1KEY  "Distributed Cognition" (1995), one PDF, item note + attachment note, one highlight
#   2 ITEM2KEY  "Group Library Paper" in the group library, no children
#   3 ITEM3KEY  "Multiple PDFs" (2020), two PDFs, note and highlight on the second one
#   4 ITEM4KEY  "Broken Attachments", one relative-path PDF and one missing PDF
# Collections: Top (100) > Child (101), Top > Sibling Two (102); item 1 is in both children.
DATA = """
INSERT INTO libraries (libraryID, type) VALUES (1, 'user'), (2, 'group');
INSERT INTO groups (groupID, libraryID, name) VALUES (1, 2, 'Group Library');

INSERT INTO itemTypes (itemTypeID, typeName) VALUES
  (1, 'journalArticle'), (2, 'attachment'), (3, 'note'), (4, 'annotation'), (5, 'book');

INSERT INTO items (itemID, itemTypeID, libraryID, key, parentItemID, dateAdded, dateModified) VALUES
  (1, 1, 1, 'ITEM1KEY', NULL, '2024-01-01', '2024-01-02'),
  (2, 1, 2, 'ITEM2KEY', NULL, '2024-01-01', '2024-01-03'),
  (3, 5, 1, 'ITEM3KEY', NULL, '2024-02-01', '2024-02-02'),
  (4, 1, 1, 'ITEM4KEY', NULL, '2024-03-01', '2024-03-02'),
  (11, 2, 1, 'ATTACH1', 1, '2024-01-01', '2024-01-02'),
  (12, 2, 1, 'ATTACH2', 3, '2024-02-01', '2024-02-02'),
  (13, 2, 1, 'ATTACH3', 3, '2024-02-01', '2024-02-02'),
  (15, 2, 1, 'ATTACH5', 4, '2024-03-01', '2024-03-02'),
  (16, 2, 1, 'ATTACH6', 4, '2024-03-01', '2024-03-02'),
  (21, 3, 1, 'NOTE1', 1, '2024-01-01', '2024-01-02'),
  (22, 3, 1, 'NOTE2', 11, '2024-01-01', '2024-01-02'),
  (23, 3, 1, 'NOTE3', 13, '2024-02-01', '2024-02-02'),
  (31, 4, 1, 'ANNOT1', 11, '2024-01-01', '2024-01-02'),
  (32, 4, 1, 'ANNOT2', 13, '2024-02-01', '2024-02-02');

INSERT INTO fields (fieldID, fieldName) VALUES
  (1, 'title'), (2, 'date'), (3, 'DOI'), (4, 'abstractNote'), (5, 'publicationTitle');

INSERT INTO itemDataValues (valueID, value) VALUES
  (1, 'Distributed Cognition'),
  (2, '1995'),
  (3, '10.1234/demo'),
  (4, 'Demo abstract'),
  (5, 'Cognitive Science'),
  (6, 'Group Library Paper'),
  (7, 'Multiple PDFs'),
  (8, '2020-05-01'),
  (9, 'Broken Attachments'),
  (10, 'Second copy');

INSERT INTO itemData (itemID, fieldID, valueID) VALUES
  (1, 1, 1), (1, 2, 2), (1, 3, 3), (1, 4, 4), (1, 5, 5),
  (2, 1, 6),
  (3, 1, 7), (3, 2, 8),
  (4, 1, 9),
  (13, 1, 10);

INSERT INTO creators (creatorID, firstName, lastName, fieldMode) VALUES
  (1, 'Edwin', 'Hutchins', 0),
  (2, NULL, 'World Health Organization', 1);
INSERT INTO creatorTypes (creatorTypeID, creatorType) VALUES (1, 'author'), (2, 'editor');
INSERT INTO itemCreators (itemID, creatorID, creatorTypeID, orderIndex) VALUES
  (1, 1, 1, 0),
  (3, 2, 2, 0);

INSERT INTO tags (tagID, name) VALUES (1, 'cognition'), (2, 'zeta'), (3, 'alpha');
INSERT INTO itemTags (itemID, tagID) VALUES (1, 1), (3, 2), (3, 3);

INSERT INTO collections (collectionID, key, libraryID, collectionName, parentCollectionID) VALUES
  (100, 'COLL1', 1, 'Top', NULL),
  (101, 'COLL2', 1, 'Child', 100),
  (102, 'COLL3', 1, 'Sibling Two', 100);
INSERT INTO collectionItems (collectionID, itemID) VALUES (101, 1), (102, 1), (102, 3);

INSERT INTO itemAttachments (itemID, parentItemID, contentType, linkMode, path) VALUES
  (11, 1, 'application/pdf', 1, 'storage:paper.pdf'),
  (12, 3, 'application/pdf', 1, 'storage:first.pdf'),
  (13, 3, 'application/pdf', 1, 'storage:second.pdf'),
  (15, 4, 'application/pdf', 2, 'relative/file.pdf'),
  (16, 4, 'application/pdf', 1, 'storage:missing.pdf');

INSERT INTO itemNotes (itemID, parentItemID, title, note) VALUES
  (21, 1, 'Item Note', '<p>Item note content</p>'),
  (22, 11, 'Attachment Note', '<p>Attachment note content</p>'),
  (23, 13, 'Second PDF Note', '<p>On the second copy</p>');

INSERT INTO itemAnnotations (itemID, parentItemID, type, text, comment, color, pageLabel, sortIndex, position) VALUES
  (31, 11, 'highlight', 'Important quote', 'Good point', '#ff0', '4', '0001', '{}'),
  (32, 13, 'highlight', 'Second copy quote', NULL, NULL, NULL, '0002', '{}');
"""


def create_zotero_db(conn: sqlite3.Connection) -> sqlite3.Connection:
    """Create the Zotero tables and the sample library on conn.

    Args:
        conn: Empty SQLite connection

    Returns:
        The same connection
    """
    conn.executescript(SCHEMA)
    conn.executescript(DATA)
    conn.commit()
    return conn


@pytest.fixture
def zotero_conn():
    """In-memory Zotero database with the sample library."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    create_zotero_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def zotero_sqlite_file(tmp_path):
    """On-disk zotero.sqlite with the sample library, next to a storage folder."""
    db_path = tmp_path / "zotero" / "zotero.sqlite"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        create_zotero_db(conn)
    finally:
        conn.close()
    return db_path


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    """Zotero storage folder holding the PDFs referenced by the sample library."""
    storage = tmp_path / "zotero" / "storage"
    files = {
        ("ATTACH1", "paper.pdf"): b"%PDF-1.4 paper",
        ("ATTACH2", "first.pdf"): b"%PDF-1.4 first",
        ("ATTACH3", "second.pdf"): b"%PDF-1.4 second",
    }
    for (key, name), content in files.items():
        folder = storage / key
        folder.mkdir(parents=True, exist_ok=True)
        (folder / name).write_bytes(content)
    return storage


@pytest.fixture
def output_root(tmp_path) -> Path:
    return tmp_path / "export"


@pytest.fixture
def log_lines():
    """List collecting everything the exporter logs."""
    return []


@pytest.fixture
def make_exporter(zotero_conn, storage_dir, log_lines):
    """Factory for exporters over the sample library with a fixed timestamp."""

    def _make(output_root, layout_mode="item-folder", policy=None):
        return ZoteroBundleExporter(
            zotero_conn,
            output_root,
            layout_mode,
            storage_dir,
            policy or AutomaticPolicy(),
            now=FIXED_NOW,
            log=log_lines.append,
        )

    return _make
