"""
Zotero note HTML to Markdown conversion.

Zotero stores notes as HTML. Exported documents carry them as Markdown,
converted with BeautifulSoup (cleanup) + html2text.
"""

from dataclasses import replace
from typing import List

import html2text
from bs4 import BeautifulSoup

from .zb_types import Note


class NoteConverter:
    """Convert Zotero note HTML into Markdown text."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.html_converter = html2text.HTML2Text()
        self.html_converter.ignore_links = False
        self.html_converter.ignore_images = True  # Ignore images including data URIs
        self.html_converter.body_width = 0  # Don't wrap lines
        self.html_converter.ul_item_mark = "-"

    def clean_html(self, html_content: str) -> str:
        """Strip script and style elements from note HTML."""
        soup = BeautifulSoup(html_content, "html.parser")
        for element in soup(["script", "style"]):
            element.decompose()
        return str(soup)

    def to_markdown(self, html_content: str) -> str:
        """
        Convert note HTML to Markdown.

        Args:
            html_content: Note body as stored by Zotero

        Returns:
            Markdown text, or "" for blank input
        """
        if not html_content or not html_content.strip():
            return ""
        try:
            return self.html_converter.handle(self.clean_html(html_content)).strip()
        except Exception as e:
            # Malformed markup: fall back to the plain text content
            if self.verbose:
                print(f"  ⚠️  Warning: note conversion failed: {e}")
            return BeautifulSoup(html_content, "html.parser").get_text().strip()

    def convert_notes(self, notes: List[Note]) -> List[Note]:
        """Return copies of notes with note_markdown filled in."""
        return [replace(note, note_markdown=self.to_markdown(note.note_html)) for note in notes]
