"""
Zotero Bundle - export a local Zotero library to Markdown + PDF bundles.
"""

__version__ = "0.1.0"
