"""
Exception types raised while reading the Zotero database and exporting items.
"""


class ZoteroBundleError(Exception):
    """Base class for all zotero_bundle errors."""


class ConfigError(ZoteroBundleError):
    """Invalid or missing configuration value."""


class DatabaseNotFoundError(ZoteroBundleError):
    """The Zotero SQLite file does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Zotero database not found: {path}")
        self.path = path


class NotFoundError(ZoteroBundleError):
    """An item id has no base row in the database."""

    def __init__(self, item_id: int):
        super().__init__(f"Could not load Zotero item {item_id}.")
        self.item_id = item_id


class AttachmentError(ZoteroBundleError):
    """Attachment-level problem. Reported as a warning, never fails the item."""


class UnsupportedPathError(AttachmentError):
    def __init__(self, item_key: str, label: str):
        super().__init__(f"Item {item_key}: unsupported attachment path format for {label}")
        self.item_key = item_key


class MissingSourceFileError(AttachmentError):
    def __init__(self, item_key: str, source_path: str):
        super().__init__(f"Item {item_key}: attachment file not found at {source_path}")
        self.item_key = item_key
        self.source_path = source_path


class ConflictCancelled(ZoteroBundleError):
    """Raised when a conflict decision cancels the remainder of the batch."""

    def __init__(self, target: str):
        super().__init__(f"Export cancelled at existing target {target}")
        self.target = target
