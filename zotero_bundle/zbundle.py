#!/usr/bin/env python3
"""
Zotero Bundle - CLI Entry Point

Exports items from a local Zotero database into Markdown + PDF bundles:
- Listing: libraries, collections, search results
- Export: search results, explicit item keys, or a whole collection
"""

import argparse
import sqlite3
import sys
import traceback
from typing import List, Optional

from dotenv import load_dotenv

from .zb_collections import (
    FOLDER_MODES, FOLDER_MODE_SINGLE, export_collection,
    collections_by_id, collection_path_label,
)
from .zb_config import load_config, ExportConfig
from .zb_errors import ZoteroBundleError, ConfigError
from .zb_export import ZoteroBundleExporter
from .zb_notes import NoteConverter
from .zb_policies import ExportPolicy, AutomaticPolicy, InteractivePolicy
from .zb_types import ItemSummary, ExportResult, LAYOUT_MODES, CONFLICT_DECISIONS
from .zotero_db import ZoteroDatabase
from .zotero_queries import (
    search_items, get_libraries, get_collections_for_library, get_collection,
    get_collection_item_summaries, get_item_summaries_by_keys, parse_tags_text,
)

CONFLICT_ASK = "ask"


def format_item_summary(index: int, summary: ItemSummary) -> str:
    """Listing entry for an item, with a tags line when it has tags."""
    details = [summary.creators_text or "Unknown creators", summary.year or "n.d."]
    details.append(f"{summary.pdf_count} PDF{'s' if summary.pdf_count != 1 else ''}")
    details.append(f"{summary.note_count} note{'s' if summary.note_count != 1 else ''}")
    details.append(summary.library_name)
    entry = f"  {index}. {summary.title}  [{summary.key}]\n     {' | '.join(details)}"
    tags = sorted(parse_tags_text(summary.tags_text))
    if tags:
        entry += f"\n     Tags: {', '.join(tags)}"
    return entry


def print_selection(summaries: List[ItemSummary]):
    print(f"\n{'='*60}")
    print(f"Selected Items ({len(summaries)} total)")
    print(f"{'='*60}")
    for idx, summary in enumerate(summaries, 1):
        print(format_item_summary(idx, summary))
    print(f"{'='*60}\n")


def confirm_export(count: int) -> bool:
    """
    Ask the user to confirm the export.

    Returns:
        True if user confirms, False otherwise
    """
    try:
        response = input(f"Export {count} item(s)? (y/N): ").strip().lower()
        return response in ['y', 'yes']
    except (EOFError, KeyboardInterrupt):
        print("\nCancelled.")
        return False


def build_policy(on_conflict: str, all_pdfs: bool) -> ExportPolicy:
    if on_conflict != CONFLICT_ASK and all_pdfs:
        return AutomaticPolicy(conflict=on_conflict, keep_all_pdfs=True)
    return InteractivePolicy(
        conflict=None if on_conflict == CONFLICT_ASK else on_conflict,
        keep_all_pdfs=all_pdfs,
    )


def print_libraries(conn):
    libraries = get_libraries(conn)
    if not libraries:
        print("No libraries found")
        return

    print(f"\n{'='*60}")
    print(f"Available Libraries ({len(libraries)} total)")
    print(f"{'='*60}")
    for library in libraries:
        print(f"  📚 {library.library_name}")
        print(f"     ID: {library.library_id}")
        print(f"     Type: {library.library_type}")
        print()
    print(f"{'='*60}\n")


def print_collections(conn, library_id: int):
    collections = get_collections_for_library(conn, library_id)
    if not collections:
        print(f"No collections found in library {library_id}")
        return

    by_id = collections_by_id(collections)
    print(f"\n{'='*60}")
    print(f"Available Collections ({len(collections)} total)")
    print(f"{'='*60}")
    for collection in collections:
        print(f"  📁 {collection.collection_name}")
        print(f"     ID: {collection.collection_id}  Key: {collection.key}")
        if collection.parent_collection_id is not None:
            print(f"     Path: {collection_path_label(collection.collection_id, by_id)}")
        print()
    print(f"{'='*60}\n")


def run_export(conn, config: ExportConfig, args, summaries: List[ItemSummary],
               collection=None) -> Optional[ExportResult]:
    """List the selection, confirm, then export."""
    if not summaries:
        print("No items to export")
        return None

    print_selection(summaries)
    if not args.yes and not confirm_export(len(summaries)):
        print("Export cancelled.")
        return None

    policy = build_policy(args.on_conflict, args.all_pdfs)
    note_converter = NoteConverter(verbose=args.verbose)

    def make_exporter(output_root):
        return ZoteroBundleExporter(
            conn,
            output_root,
            config.layout_mode,
            config.storage_path,
            policy,
            note_converter=note_converter,
            now=config.now,
            verbose=args.verbose
        )

    if collection is not None:
        all_collections = get_collections_for_library(conn, collection.library_id)
        result = export_collection(
            conn, collection, all_collections, config.output_dir, args.folder_mode, make_exporter
        )
    else:
        result = make_exporter(config.output_dir).export_items(summaries)

    print(f"\n{result.summary_line()}")
    if result.warnings:
        print(f"⚠️  {len(result.warnings)} warning(s) during export")
    return result


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""

    # Load environment variables
    load_dotenv()

    parser = argparse.ArgumentParser(
        description='Export items from a local Zotero database to Markdown + PDF bundles',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List libraries and collections
  zbundle --list-libraries
  zbundle --list-collections --library 1

  # Search items
  zbundle --search "distributed cognition"

  # Export search results, one folder per item
  zbundle --export-search "distributed cognition" --output-dir ./export

  # Export specific items in the flat layout, overwriting earlier exports
  zbundle --export-items ABCD1234,EFGH5678 --layout flat --on-conflict overwrite

  # Export a collection, mirroring its sub-collections as folders
  zbundle --export-collection 42 --folder-mode mirror-subcollections --yes
        """
    )

    # Mode selection
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        '--list-libraries',
        action='store_true',
        help='List all libraries and exit'
    )
    mode_group.add_argument(
        '--list-collections',
        action='store_true',
        help='List the collections of a library (requires --library)'
    )
    mode_group.add_argument(
        '--search',
        type=str,
        metavar='TEXT',
        help='Search items by title, creators, date, DOI and tags'
    )
    mode_group.add_argument(
        '--export-search',
        type=str,
        metavar='TEXT',
        help='Export every item matching a search'
    )
    mode_group.add_argument(
        '--export-items',
        type=str,
        metavar='KEYS',
        help='Export items by key (comma-separated)'
    )
    mode_group.add_argument(
        '--export-collection',
        type=int,
        metavar='ID',
        help='Export a collection and its sub-collections'
    )

    # Common arguments
    parser.add_argument(
        '--library',
        type=int,
        help='Library ID for --list-collections'
    )
    parser.add_argument(
        '--layout',
        choices=LAYOUT_MODES,
        help='Output layout (overrides ZOTERO_LAYOUT_MODE, default: item-folder)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        help='Export directory (overrides ZOTERO_EXPORT_DIR, default: ./zotero_export)'
    )
    parser.add_argument(
        '--sqlite',
        type=str,
        help='Path to zotero.sqlite (overrides ZOTERO_SQLITE_PATH)'
    )
    parser.add_argument(
        '--storage',
        type=str,
        help='Path to the Zotero storage folder (overrides ZOTERO_STORAGE_PATH)'
    )
    parser.add_argument(
        '--folder-mode',
        choices=FOLDER_MODES,
        default=FOLDER_MODE_SINGLE,
        help='[Collection] One folder for the collection, or one per sub-collection (default: single-folder)'
    )
    parser.add_argument(
        '--on-conflict',
        choices=(CONFLICT_ASK,) + CONFLICT_DECISIONS,
        default=CONFLICT_ASK,
        help='What to do when an item was already exported (default: ask)'
    )
    parser.add_argument(
        '--all-pdfs',
        action='store_true',
        help='Export every PDF of an item without asking'
    )
    parser.add_argument(
        '--limit',
        type=int,
        help='Maximum search results (overrides ZOTERO_MAX_SEARCH_RESULTS, default: 200)'
    )
    parser.add_argument(
        '--yes',
        action='store_true',
        help='Skip confirmation prompt (useful for scripts)'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Show detailed progress and tracebacks'
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    if args.list_collections and args.library is None:
        print("Error: --library required for --list-collections")
        print("Example: zbundle --list-collections --library 1")
        return 2

    modes = [
        args.list_libraries, args.list_collections, args.search is not None,
        args.export_search is not None, args.export_items, args.export_collection is not None,
    ]
    if not any(modes):
        parser.print_help()
        return 0

    if args.verbose:
        print(f"Database: {config.sqlite_path}")
        print(f"Storage:  {config.storage_path}")
        print(f"Output:   {config.output_dir} ({config.layout_mode})")

    try:
        with ZoteroDatabase(config.sqlite_path, verbose=args.verbose) as db:
            conn = db.conn

            # Handle --list-libraries flag
            if args.list_libraries:
                print_libraries(conn)
                return 0

            # Handle --list-collections flag
            if args.list_collections:
                print_collections(conn, args.library)
                return 0

            # Handle --search flag
            if args.search is not None:
                summaries = search_items(conn, args.search, config.max_search_results)
                if not summaries:
                    print("No matching items")
                    return 0
                print_selection(summaries)
                return 0

            if args.export_search is not None:
                summaries = search_items(conn, args.export_search, config.max_search_results)
                result = run_export(conn, config, args, summaries)
            elif args.export_items:
                keys = [key.strip() for key in args.export_items.split(',') if key.strip()]
                summaries = get_item_summaries_by_keys(conn, keys)
                missing = sorted(set(keys) - {summary.key for summary in summaries})
                if missing:
                    print(f"[warning] Unknown item key(s): {', '.join(missing)}")
                result = run_export(conn, config, args, summaries)
            else:
                collection = get_collection(conn, args.export_collection)
                if collection is None:
                    print(f"Error: Collection {args.export_collection} not found")
                    return 1
                summaries = get_collection_item_summaries(conn, collection.collection_id)
                result = run_export(conn, config, args, summaries, collection=collection)

            if result is not None and result.failed:
                return 1
            return 0

    except (ZoteroBundleError, sqlite3.Error) as e:
        print(f"Error: {e}")
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
