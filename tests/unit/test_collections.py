"""Tests for collection export modes."""

import pytest

from zotero_bundle.zb_collections import (
    collection_path_label,
    collections_by_id,
    export_collection,
    get_descendant_collection_ids,
    get_relative_path_segments,
)
from zotero_bundle.zb_policies import AutomaticPolicy
from zotero_bundle.zb_types import Collection
from zotero_bundle.zotero_queries import get_collection, get_collections_for_library

ITEM1_SLUG = "ITEM1KEY-Distributed-Cognition"
ITEM3_SLUG = "ITEM3KEY-Multiple-PDFs"


@pytest.fixture
def tree():
    """Top > (Child > Grandchild), Top > Sibling."""
    return [
        Collection(collection_id=1, key="C1", library_id=1, collection_name="Top"),
        Collection(collection_id=2, key="C2", library_id=1, collection_name="Child", parent_collection_id=1),
        Collection(collection_id=3, key="C3", library_id=1, collection_name="Sibling", parent_collection_id=1),
        Collection(collection_id=4, key="C4", library_id=1, collection_name="Grandchild", parent_collection_id=2),
        Collection(collection_id=5, key="C5", library_id=1, collection_name="Elsewhere"),
    ]


class TestCollectionHelpers:
    """Tests for collection tree helpers."""

    def test_descendants_breadth_first(self, tree):
        assert get_descendant_collection_ids(1, tree) == [1, 2, 3, 4]
        assert get_descendant_collection_ids(2, tree) == [2, 4]
        assert get_descendant_collection_ids(5, tree) == [5]

    def test_path_label(self, tree):
        by_id = collections_by_id(tree)
        assert collection_path_label(4, by_id) == "Top / Child / Grandchild"
        assert collection_path_label(1, by_id) == "Top"

    def test_relative_segments(self, tree):
        by_id = collections_by_id(tree)
        assert get_relative_path_segments(1, 4, by_id) == ["Child", "Grandchild"]
        assert get_relative_path_segments(2, 4, by_id) == ["Grandchild"]
        assert get_relative_path_segments(1, 1, by_id) == []


class TestExportCollection:
    """Tests for export_collection."""

    def run(self, conn, collection_id, output_root, folder_mode, make_exporter, policy=None):
        collection = get_collection(conn, collection_id)
        collections = get_collections_for_library(conn, collection.library_id)
        return export_collection(
            conn, collection, collections, output_root, folder_mode,
            lambda root: make_exporter(root, policy=policy),
            log=lambda line: None,
        )

    def test_single_folder(self, zotero_conn, make_exporter, output_root):
        result = self.run(zotero_conn, 100, output_root, "single-folder", make_exporter)

        assert result.exported == 2
        assert sorted(p.name for p in (output_root / "Top").iterdir()) == [ITEM1_SLUG, ITEM3_SLUG]

    def test_mirror_subcollections(self, zotero_conn, make_exporter, output_root):
        result = self.run(zotero_conn, 100, output_root, "mirror-subcollections", make_exporter)

        assert (output_root / "Top" / "Child" / ITEM1_SLUG / "item.md").is_file()
        assert (output_root / "Top" / "Sibling-Two" / ITEM3_SLUG / "item.md").is_file()
        # Items in two sibling sub-collections are exported once per folder
        assert (output_root / "Top" / "Sibling-Two" / ITEM1_SLUG / "item.md").is_file()
        assert result.exported == 3

    def test_mirror_from_subcollection(self, zotero_conn, make_exporter, output_root):
        result = self.run(zotero_conn, 101, output_root, "mirror-subcollections", make_exporter)

        assert result.exported == 1
        assert (output_root / "Child" / ITEM1_SLUG / "item.md").is_file()

    def test_mirror_unsafe_name_falls_back(self, zotero_conn, make_exporter, output_root):
        zotero_conn.execute(
            "INSERT INTO collections (collectionID, key, libraryID, collectionName, parentCollectionID) "
            "VALUES (103, 'COLL4', 1, '???', 101)"
        )
        zotero_conn.execute("INSERT INTO collectionItems (collectionID, itemID) VALUES (103, 4)")

        self.run(zotero_conn, 100, output_root, "mirror-subcollections", make_exporter)

        assert (output_root / "Top" / "Child" / "collection" / "ITEM4KEY-Broken-Attachments").is_dir()

    def test_unsafe_root_name_uses_key(self, zotero_conn, make_exporter, output_root):
        zotero_conn.execute("UPDATE collections SET collectionName = '***' WHERE collectionID = 101")

        self.run(zotero_conn, 101, output_root, "single-folder", make_exporter)

        assert (output_root / "COLL2" / ITEM1_SLUG).is_dir()

    def test_mirror_cancel_stops_remaining_collections(self, zotero_conn, make_exporter, output_root):
        self.run(zotero_conn, 100, output_root, "mirror-subcollections", make_exporter)
        sibling = output_root / "Top" / "Sibling-Two"
        for folder in sibling.iterdir():
            (folder / "item.md").write_text("kept", encoding="utf-8")

        result = self.run(zotero_conn, 100, output_root, "mirror-subcollections", make_exporter,
                          policy=AutomaticPolicy("cancel"))

        assert result.cancelled is True
        assert result.exported == 0
        assert all((folder / "item.md").read_text(encoding="utf-8") == "kept" for folder in sibling.iterdir())

    def test_unknown_folder_mode(self, zotero_conn, make_exporter, output_root):
        with pytest.raises(ValueError):
            self.run(zotero_conn, 100, output_root, "nested", make_exporter)
