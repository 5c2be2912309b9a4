"""
Zotero Bundle Data Model

Typed records for items read out of a local Zotero database and for the
run-level result of an export.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List


LAYOUT_ITEM_FOLDER = "item-folder"
LAYOUT_FLAT = "flat"
LAYOUT_YEAR_ITEM = "year-item"
LAYOUT_MODES = (LAYOUT_ITEM_FOLDER, LAYOUT_FLAT, LAYOUT_YEAR_ITEM)

DECISION_OVERWRITE = "overwrite"
DECISION_SKIP = "skip"
DECISION_CANCEL = "cancel"
CONFLICT_DECISIONS = (DECISION_OVERWRITE, DECISION_SKIP, DECISION_CANCEL)

PARENT_ITEM = "item"
PARENT_ATTACHMENT = "attachment"


@dataclass
class Creator:
    """One creator of an item, in display order."""
    order_index: int
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None            # Single-field mode (institutions etc.)
    creator_type: Optional[str] = None


@dataclass
class Attachment:
    """File attachment hanging off a top-level item."""
    item_id: int
    key: str
    filename: str
    is_pdf: bool
    title: Optional[str] = None
    content_type: Optional[str] = None
    link_mode: Optional[int] = None
    path: Optional[str] = None            # "storage:<file>" or an absolute path


@dataclass(frozen=True)
class ParentRef:
    """Tagged reference to a note's parent: the item itself or one of its attachments."""
    kind: str                             # PARENT_ITEM or PARENT_ATTACHMENT
    item_id: int


@dataclass
class Note:
    """Child note. The HTML body is converted to Markdown at export time."""
    item_id: int
    parent: ParentRef
    note_html: str = ""
    title: Optional[str] = None
    note_markdown: Optional[str] = None

    @property
    def parent_item_id(self) -> int:
        return self.parent.item_id


@dataclass
class Annotation:
    """PDF annotation (highlight, underline, note...) on an attachment."""
    item_id: int
    parent_item_id: int                   # Always an attachment
    type: Optional[str] = None
    text: Optional[str] = None
    comment: Optional[str] = None
    color: Optional[str] = None
    page_label: Optional[str] = None
    sort_index: Optional[str] = None
    position: Optional[str] = None


@dataclass
class Collection:
    collection_id: int
    key: str
    library_id: int
    collection_name: str
    parent_collection_id: Optional[int] = None


@dataclass
class Library:
    library_id: int
    library_type: str
    library_name: str


@dataclass
class ItemSummary:
    """Lightweight row used for searching, listing and selecting items."""
    item_id: int
    key: str
    library_id: int
    library_name: str
    item_type: str
    title: str
    creators_text: str
    pdf_count: int
    has_pdf: bool
    note_count: int
    date: Optional[str] = None
    year: Optional[str] = None
    date_added: Optional[str] = None
    date_modified: Optional[str] = None
    doi: Optional[str] = None
    tags_text: Optional[str] = None


@dataclass
class ZoteroItem:
    """Fully loaded item with all of its children."""
    item_id: int
    key: str
    library_id: int
    library_name: str
    item_type: str
    title: str
    creators: List[Creator] = field(default_factory=list)
    year: Optional[str] = None
    date: Optional[str] = None
    publication_title: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    publisher: Optional[str] = None
    place: Optional[str] = None
    language: Optional[str] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    abstract: Optional[str] = None
    extra: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    collections: List[str] = field(default_factory=list)
    date_added: Optional[str] = None
    date_modified: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    annotations: List[Annotation] = field(default_factory=list)


@dataclass
class ItemOutputPaths:
    """Where one item lands on disk for a given layout mode."""
    markdown_path: Path
    item_folder: Optional[Path] = None    # None for the flat layout
    flat_prefix: Optional[str] = None     # Only set for the flat layout


@dataclass
class ExportResult:
    """Counters and warnings accumulated over one export run."""
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    warnings: List[str] = field(default_factory=list)

    def merge(self, other: "ExportResult"):
        """Fold another run's counters and warnings into this one."""
        self.exported += other.exported
        self.skipped += other.skipped
        self.failed += other.failed
        self.cancelled = self.cancelled or other.cancelled
        self.warnings.extend(other.warnings)

    def summary_line(self) -> str:
        line = (f"Export complete. Exported: {self.exported}, "
                f"skipped: {self.skipped}, failed: {self.failed}")
        if self.cancelled:
            line += ", cancelled early"
        return line + "."
