"""
Export decision policies.

The exporter asks a policy two questions: what to do when an item's target
already exists, and which PDFs to keep when an item has more than one.
"""

from typing import Optional, List

from .zb_types import (
    ZoteroItem, Attachment, CONFLICT_DECISIONS,
    DECISION_OVERWRITE, DECISION_SKIP, DECISION_CANCEL,
)


class ExportPolicy:
    """Base class for conflict and attachment decisions."""

    def resolve_conflict(self, existing_target: str, item: ZoteroItem) -> str:
        """Return one of "overwrite", "skip" or "cancel"."""
        raise NotImplementedError

    def select_attachments(self, item: ZoteroItem, pdf_attachments: List[Attachment]) -> List[Attachment]:
        """Return the subset of pdf_attachments to export."""
        raise NotImplementedError


class AutomaticPolicy(ExportPolicy):
    """Fixed decisions, for scripted runs and tests."""

    def __init__(self, conflict: str = DECISION_OVERWRITE, keep_all_pdfs: bool = True):
        """
        Args:
            conflict: Decision returned for every existing target
            keep_all_pdfs: If False, keep only the first PDF of each item
        """
        if conflict not in CONFLICT_DECISIONS:
            raise ValueError(f"Unknown conflict decision: {conflict!r}")
        self.conflict = conflict
        self.keep_all_pdfs = keep_all_pdfs

    def resolve_conflict(self, existing_target: str, item: ZoteroItem) -> str:
        return self.conflict

    def select_attachments(self, item: ZoteroItem, pdf_attachments: List[Attachment]) -> List[Attachment]:
        if self.keep_all_pdfs:
            return list(pdf_attachments)
        return list(pdf_attachments[:1])


class InteractivePolicy(ExportPolicy):
    """Ask on the terminal."""

    _ANSWERS = {
        "o": DECISION_OVERWRITE, "overwrite": DECISION_OVERWRITE,
        "s": DECISION_SKIP, "skip": DECISION_SKIP,
        "c": DECISION_CANCEL, "cancel": DECISION_CANCEL,
    }

    def __init__(self, conflict: Optional[str] = None, keep_all_pdfs: bool = False):
        """
        Args:
            conflict: Fixed conflict decision; prompt for each conflict if None
            keep_all_pdfs: If True, export every PDF without prompting
        """
        if conflict is not None and conflict not in CONFLICT_DECISIONS:
            raise ValueError(f"Unknown conflict decision: {conflict!r}")
        self.conflict = conflict
        self.keep_all_pdfs = keep_all_pdfs

    def resolve_conflict(self, existing_target: str, item: ZoteroItem) -> str:
        if self.conflict is not None:
            return self.conflict

        print(f"\nItem already exists: {item.title or item.key}")
        print(f"  {existing_target}")
        while True:
            try:
                response = input("[o]verwrite, [s]kip or [c]ancel? ").strip().lower()
            except (EOFError, KeyboardInterrupt):
                print("\nCancelled.")
                return DECISION_CANCEL
            if response in self._ANSWERS:
                return self._ANSWERS[response]
            print("Please answer o, s or c.")

    def select_attachments(self, item: ZoteroItem, pdf_attachments: List[Attachment]) -> List[Attachment]:
        if self.keep_all_pdfs or len(pdf_attachments) <= 1:
            return list(pdf_attachments)

        print(f"\nSelect PDFs for {item.title or item.key}:")
        for idx, attachment in enumerate(pdf_attachments, 1):
            label = attachment.filename or attachment.key
            if attachment.title:
                label += f" ({attachment.title})"
            print(f"  {idx}. {label}")

        while True:
            try:
                response = input("Numbers to export (comma-separated, blank for all): ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nNo PDFs selected.")
                return []
            if not response:
                return list(pdf_attachments)
            try:
                indexes = [int(part) for part in response.split(",") if part.strip()]
            except ValueError:
                print("Please enter numbers like 1,3.")
                continue
            if all(1 <= idx <= len(pdf_attachments) for idx in indexes):
                seen = []
                for idx in indexes:
                    if pdf_attachments[idx - 1] not in seen:
                        seen.append(pdf_attachments[idx - 1])
                return seen
            print(f"Please choose between 1 and {len(pdf_attachments)}.")
