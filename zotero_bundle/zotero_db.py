"""
Read-only access to a local Zotero SQLite database.

Zotero keeps zotero.sqlite locked while it is running, so the database is
copied to a temporary file first and the copy is opened in read-only URI mode.
Nothing in this package ever writes to the source database.
"""

import os
import shutil
import sqlite3
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Dict, List, Any, Sequence

from .zb_errors import DatabaseNotFoundError


def sql_placeholders(count: int) -> str:
    """
    Build a "?, ?, ?" placeholder list for an IN (...) clause.

    Args:
        count: Number of placeholders

    Returns:
        Comma-separated placeholders

    Raises:
        ValueError: If count is not positive
    """
    if count <= 0:
        raise ValueError("Placeholder count must be greater than zero.")
    return ", ".join(["?"] * count)


def run_query(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """Execute a parametrized query and return rows as dicts keyed by column name."""
    cursor = conn.execute(sql, tuple(params))
    try:
        columns = [col[0] for col in cursor.description or []]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]
    finally:
        cursor.close()


def run_one(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    """Execute a query and return the first row, or None."""
    rows = run_query(conn, sql, params)
    return rows[0] if rows else None


class ZoteroDatabase:
    """Read-only handle on a Zotero database (usable as a context manager)."""

    def __init__(self, sqlite_path: str, copy_to_temp: bool = True, verbose: bool = False):
        """
        Open the Zotero database.

        Args:
            sqlite_path: Path to zotero.sqlite
            copy_to_temp: If True, query a temporary copy instead of the live file
            verbose: If True, print where the database was opened from

        Raises:
            DatabaseNotFoundError: If sqlite_path does not exist
        """
        self.sqlite_path = Path(sqlite_path)
        self.verbose = verbose
        self._temp_path: Optional[Path] = None

        if not self.sqlite_path.is_file():
            raise DatabaseNotFoundError(str(self.sqlite_path))

        open_path = self.sqlite_path
        if copy_to_temp:
            self._temp_path = Path(tempfile.gettempdir()) / f"zotero-bundle-{uuid.uuid4().hex}.sqlite"
            shutil.copyfile(self.sqlite_path, self._temp_path)
            open_path = self._temp_path

        uri = f"{open_path.resolve().as_uri()}?mode=ro"
        self.conn = None
        try:
            self.conn = sqlite3.connect(uri, uri=True)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA query_only=ON")
        except sqlite3.Error:
            if self.conn is not None:
                self.conn.close()
            self._remove_temp_copy()
            raise

        if self.verbose:
            print(f"[DB] Opened {self.sqlite_path} (read-only{', temp copy' if copy_to_temp else ''})")

    def close(self):
        """Close the connection and remove the temporary copy."""
        try:
            self.conn.close()
        finally:
            self._remove_temp_copy()

    def _remove_temp_copy(self):
        if self._temp_path is not None and self._temp_path.exists():
            os.remove(self._temp_path)
        self._temp_path = None

    def __enter__(self) -> "ZoteroDatabase":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
