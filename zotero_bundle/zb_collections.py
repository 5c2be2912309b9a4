"""
Collection export modes.

A collection is exported either into one folder (all items of the collection
and its sub-collections together) or as a tree of folders mirroring the
sub-collection hierarchy.
"""

import sqlite3
from collections import deque
from pathlib import Path
from typing import Callable, Dict, List, Union

from .zb_export import ZoteroBundleExporter
from .zb_naming import sanitize_segment
from .zb_types import Collection, ExportResult
from .zotero_queries import get_collection_item_summaries, get_direct_collection_item_summaries

FOLDER_MODE_SINGLE = "single-folder"
FOLDER_MODE_MIRROR = "mirror-subcollections"
FOLDER_MODES = (FOLDER_MODE_SINGLE, FOLDER_MODE_MIRROR)

FALLBACK_SEGMENT = "collection"


def collections_by_id(collections: List[Collection]) -> Dict[int, Collection]:
    return {collection.collection_id: collection for collection in collections}


def get_collection_path_segments(collection_id: int, by_id: Dict[int, Collection]) -> List[str]:
    """Collection names from the top-level ancestor down to collection_id."""
    segments = []
    seen = set()
    current = collection_id
    while current is not None and current not in seen:
        node = by_id.get(current)
        if node is None:
            break
        seen.add(current)
        segments.append(node.collection_name)
        current = node.parent_collection_id
    return list(reversed(segments))


def collection_path_label(collection_id: int, by_id: Dict[int, Collection]) -> str:
    """Human-readable path, e.g. "Top / Child"."""
    return " / ".join(get_collection_path_segments(collection_id, by_id))


def get_relative_path_segments(root_id: int, collection_id: int, by_id: Dict[int, Collection]) -> List[str]:
    """Path segments of collection_id below root_id (empty for the root itself)."""
    root_segments = get_collection_path_segments(root_id, by_id)
    return get_collection_path_segments(collection_id, by_id)[len(root_segments):]


def get_descendant_collection_ids(root_id: int, collections: List[Collection]) -> List[int]:
    """root_id followed by all of its descendants, breadth-first."""
    children_by_parent: Dict[int, List[int]] = {}
    for collection in collections:
        if collection.parent_collection_id is None:
            continue
        children_by_parent.setdefault(collection.parent_collection_id, []).append(collection.collection_id)

    ordered = []
    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        if current in ordered:
            continue
        ordered.append(current)
        queue.extend(children_by_parent.get(current, []))
    return ordered


def collection_folder_name(collection: Collection) -> str:
    return sanitize_segment(collection.collection_name) or collection.key


def export_collection(
    conn: sqlite3.Connection,
    collection: Collection,
    collections: List[Collection],
    output_root: Union[str, Path],
    folder_mode: str,
    make_exporter: Callable[[Path], ZoteroBundleExporter],
    log: Callable[[str], None] = print
) -> ExportResult:
    """
    Export a collection into <output_root>/<collection folder>.

    Args:
        conn: Read-only Zotero connection
        collection: Selected collection
        collections: All collections of the collection's library
        output_root: Base export directory
        folder_mode: 'single-folder' or 'mirror-subcollections'
        make_exporter: Builds an exporter writing into the given directory
        log: Sink for progress lines

    Returns:
        Combined ExportResult over every exported folder
    """
    if folder_mode not in FOLDER_MODES:
        raise ValueError(f"Unknown collection folder mode: {folder_mode!r}")

    collection_root = Path(output_root) / collection_folder_name(collection)

    if folder_mode == FOLDER_MODE_SINGLE:
        summaries = get_collection_item_summaries(conn, collection.collection_id)
        result = make_exporter(collection_root).export_items(summaries)
        log(f"Collection {collection.collection_name}: {result.summary_line()}")
        return result

    by_id = collections_by_id(collections)
    by_id.setdefault(collection.collection_id, collection)
    total = ExportResult()

    for collection_id in get_descendant_collection_ids(collection.collection_id, collections):
        summaries = get_direct_collection_item_summaries(conn, collection_id)
        if not summaries:
            continue

        segments = [
            sanitize_segment(segment) or FALLBACK_SEGMENT
            for segment in get_relative_path_segments(collection.collection_id, collection_id, by_id)
        ]
        target_folder = collection_root.joinpath(*segments)

        result = make_exporter(target_folder).export_items(summaries)
        log(f"Collection {collection_path_label(collection_id, by_id)}: {result.summary_line()}")

        total.merge(result)
        if result.cancelled:
            break

    return total
