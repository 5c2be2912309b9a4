"""
Zotero Bundle Export Module

Exports Zotero items to self-contained folders of Markdown + copied PDFs.
Items are processed one at a time; a failure on one item is counted and
logged, and the batch moves on to the next.
"""

import os
import re
import shutil
import sqlite3
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Callable, Union, Set

from .zb_errors import AttachmentError, ConflictCancelled, UnsupportedPathError, MissingSourceFileError
from .zb_markdown import build_markdown
from .zb_naming import build_item_slug, make_unique_file_path, resolve_item_output_paths, sanitize_filename
from .zb_notes import NoteConverter
from .zb_policies import ExportPolicy
from .zb_types import (
    ZoteroItem, ItemSummary, Attachment, Note, ItemOutputPaths, ExportResult,
    LAYOUT_FLAT, DECISION_CANCEL, DECISION_SKIP, PARENT_ITEM,
)
from .zotero_loader import get_item_export_data, STORAGE_PREFIX

_WINDOWS_DRIVE_PATH = re.compile(r"^[A-Za-z]:\\")


def resolve_attachment_source_path(storage_path: Union[str, Path], attachment: Attachment) -> str:
    """
    Locate an attachment's file on disk.

    "storage:<file>" paths live under <storage>/<attachment key>/<file>;
    absolute POSIX paths and Windows drive paths are used as they are.

    Raises:
        UnsupportedPathError: For a missing or relative path
    """
    attachment_path = attachment.path
    label = attachment.filename or attachment.key
    if not attachment_path:
        raise UnsupportedPathError(attachment.key, label)

    if attachment_path.startswith(STORAGE_PREFIX):
        relative = attachment_path[len(STORAGE_PREFIX):].lstrip("/\\")
        filename = relative or attachment.filename or f"{attachment.key}.pdf"
        return os.path.join(str(storage_path), attachment.key, filename)

    if os.path.isabs(attachment_path) or _WINDOWS_DRIVE_PATH.match(attachment_path):
        return attachment_path

    raise UnsupportedPathError(attachment.key, label)


def remove_existing_target(output_root: Path, paths: ItemOutputPaths):
    """
    Delete a previous export of an item before overwriting it.

    Folder layouts remove the whole item folder. The flat layout removes the
    markdown file and every file in the output root carrying the item's prefix.
    """
    if paths.item_folder is not None:
        if paths.item_folder.exists():
            shutil.rmtree(paths.item_folder)
        return

    paths.markdown_path.unlink(missing_ok=True)

    if not paths.flat_prefix or not output_root.is_dir():
        return

    for entry in output_root.iterdir():
        if entry.is_file() and entry.name.startswith(paths.flat_prefix):
            entry.unlink(missing_ok=True)


def select_notes(item: ZoteroItem, selected_ids: Set[int]) -> List[Note]:
    """Notes on the item itself plus notes on the selected attachments."""
    return [
        note for note in item.notes
        if note.parent.kind == PARENT_ITEM or note.parent.item_id in selected_ids
    ]


class ZoteroBundleExporter:
    """Exports Zotero items to Markdown bundles on the local filesystem."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        output_root: Union[str, Path],
        layout_mode: str,
        storage_path: Union[str, Path],
        policy: ExportPolicy,
        note_converter: Optional[NoteConverter] = None,
        now: Optional[datetime] = None,
        log: Callable[[str], None] = print,
        verbose: bool = False
    ):
        """
        Initialize the exporter.

        Args:
            conn: Read-only connection to the Zotero database
            output_root: Directory that receives the exported items
            layout_mode: 'item-folder', 'flat' or 'year-item'
            storage_path: Zotero storage directory (for "storage:" attachments)
            policy: Conflict and PDF-selection decisions
            note_converter: HTML to Markdown converter for notes
            now: Fixed export timestamp (default: current UTC time per item)
            log: Sink for progress, warning and error lines
            verbose: If True, print tracebacks for failed items
        """
        self.conn = conn
        self.output_root = Path(output_root)
        self.layout_mode = layout_mode
        self.storage_path = Path(storage_path)
        self.policy = policy
        self.note_converter = note_converter or NoteConverter(verbose=verbose)
        self.now = now
        self.log = log
        self.verbose = verbose

    def _warn(self, result: ExportResult, warning: str):
        result.warnings.append(warning)
        self.log(f"[warning] {warning}")

    def _target_attachment_path(self, paths: ItemOutputPaths, source_filename: str) -> Path:
        sanitized = sanitize_filename(source_filename)
        if self.layout_mode == LAYOUT_FLAT:
            return paths.markdown_path.parent / f"{paths.flat_prefix or ''}{sanitized}"
        return paths.markdown_path.parent / sanitized

    def _copy_attachment(self, item: ZoteroItem, attachment: Attachment,
                         paths: ItemOutputPaths, result: ExportResult) -> Optional[str]:
        """
        Copy one attachment next to the item's markdown.

        Returns:
            Basename of the copied file, or None if the attachment was skipped
        """
        try:
            source_path = resolve_attachment_source_path(self.storage_path, attachment)
            if not os.path.exists(source_path):
                raise MissingSourceFileError(item.key, source_path)
        except AttachmentError as e:
            self._warn(result, str(e))
            return None

        target_path = make_unique_file_path(
            self._target_attachment_path(paths, attachment.filename or f"{attachment.key}.pdf")
        )
        shutil.copyfile(source_path, target_path)
        if self.verbose:
            self.log(f"    ✓ Copied {source_path} -> {target_path.name}")
        return target_path.name

    def export_item(self, summary: ItemSummary, result: ExportResult):
        """
        Export a single item into the output root.

        Raises:
            ConflictCancelled: If the policy cancels at an existing target
        """
        item = get_item_export_data(self.conn, summary.item_id)
        slug = build_item_slug(item)
        paths = resolve_item_output_paths(self.output_root, self.layout_mode, slug, item.year)
        existing_target = paths.item_folder or paths.markdown_path

        if existing_target.exists():
            decision = self.policy.resolve_conflict(str(existing_target), item)
            if decision == DECISION_CANCEL:
                raise ConflictCancelled(str(existing_target))
            if decision == DECISION_SKIP:
                result.skipped += 1
                self.log(f"Skipped {item.key} (already exported at {existing_target})")
                return
            remove_existing_target(self.output_root, paths)

        paths.markdown_path.parent.mkdir(parents=True, exist_ok=True)

        pdf_attachments = [attachment for attachment in item.attachments if attachment.is_pdf]
        if len(pdf_attachments) > 1:
            selected_pdfs = self.policy.select_attachments(item, pdf_attachments)
        else:
            selected_pdfs = pdf_attachments

        selected_ids = {attachment.item_id for attachment in selected_pdfs}
        copied_names: List[str] = []
        for attachment in selected_pdfs:
            copied = self._copy_attachment(item, attachment, paths, result)
            if copied:
                copied_names.append(copied)

        highlights = [a for a in item.annotations if a.parent_item_id in selected_ids]
        notes = select_notes(item, selected_ids)

        markdown = build_markdown(
            item=item,
            selected_attachments=selected_pdfs,
            exported_filenames=copied_names,
            highlights=highlights,
            notes=self.note_converter.convert_notes(notes),
            exported_at=self.now or datetime.now(timezone.utc),
        )

        paths.markdown_path.write_text(markdown, encoding="utf-8")
        result.exported += 1
        self.log(f"Exported {item.key} -> {paths.markdown_path}")

    def export_items(self, summaries: List[ItemSummary]) -> ExportResult:
        """
        Export items in order.

        Args:
            summaries: Items to export

        Returns:
            ExportResult with exported/skipped/failed counts and warnings
        """
        self.output_root.mkdir(parents=True, exist_ok=True)
        result = ExportResult()

        for summary in summaries:
            try:
                self.export_item(summary, result)
            except ConflictCancelled as e:
                result.cancelled = True
                self.log(f"{e}; remaining items not processed")
                break
            except Exception as e:
                result.failed += 1
                self.log(f"[error] Failed exporting item {summary.key} ({summary.title}): {e}")
                if self.verbose:
                    traceback.print_exc()

        return result
