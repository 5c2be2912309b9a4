"""
Configuration for zbundle runs.

Values come from the environment (a .env file is loaded by the CLI with
python-dotenv) and are overridden by command-line flags.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Mapping, Any

from .zb_errors import ConfigError
from .zb_types import LAYOUT_MODES, LAYOUT_ITEM_FOLDER

DEFAULT_SQLITE_PATH = os.path.join("~", "Zotero", "zotero.sqlite")
DEFAULT_EXPORT_DIR = "./zotero_export"
DEFAULT_MAX_SEARCH_RESULTS = 200


@dataclass
class ExportConfig:
    sqlite_path: Path
    storage_path: Path
    output_dir: Path
    layout_mode: str = LAYOUT_ITEM_FOLDER
    max_search_results: int = DEFAULT_MAX_SEARCH_RESULTS
    now: Optional[datetime] = None        # Fixed export timestamp, for reproducible output


def clean_value(value: Optional[str]) -> Optional[str]:
    """
    Strip whitespace and surrounding quotes from a config value.

    Users sometimes quote values in .env files, e.g. ZOTERO_LAYOUT_MODE='flat'.
    Returns None for unset or blank values.
    """
    if value is None:
        return None
    cleaned = value.strip().strip("'\"").strip()
    return cleaned or None


def parse_positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {name}: '{value}' (expected a whole number)")
    if number <= 0:
        raise ConfigError(f"Invalid {name}: '{value}' (must be greater than 0)")
    return number


def load_config(args: Any = None, env: Optional[Mapping[str, str]] = None) -> ExportConfig:
    """
    Resolve the run configuration.

    Args:
        args: Parsed argparse namespace; its sqlite/storage/output_dir/layout/limit
              attributes override the environment when set
        env: Environment mapping (default: os.environ)

    Returns:
        ExportConfig with absolute, user-expanded paths

    Raises:
        ConfigError: For an unknown layout mode or a non-numeric result limit
    """
    env = os.environ if env is None else env

    def pick(attr: str, env_name: str) -> Optional[str]:
        override = getattr(args, attr, None) if args is not None else None
        if override is not None:
            return clean_value(str(override))
        return clean_value(env.get(env_name))

    sqlite_value = pick("sqlite", "ZOTERO_SQLITE_PATH") or DEFAULT_SQLITE_PATH
    sqlite_path = Path(sqlite_value).expanduser().resolve()

    storage_value = pick("storage", "ZOTERO_STORAGE_PATH")
    if storage_value:
        storage_path = Path(storage_value).expanduser().resolve()
    else:
        storage_path = sqlite_path.parent / "storage"

    output_value = pick("output_dir", "ZOTERO_EXPORT_DIR") or DEFAULT_EXPORT_DIR
    output_dir = Path(output_value).expanduser().resolve()

    layout_mode = pick("layout", "ZOTERO_LAYOUT_MODE") or LAYOUT_ITEM_FOLDER
    if layout_mode not in LAYOUT_MODES:
        raise ConfigError(
            f"Invalid layout mode: '{layout_mode}'. Must be one of: {', '.join(LAYOUT_MODES)}"
        )

    limit_value = pick("limit", "ZOTERO_MAX_SEARCH_RESULTS")
    max_search_results = (
        parse_positive_int("ZOTERO_MAX_SEARCH_RESULTS", limit_value)
        if limit_value is not None else DEFAULT_MAX_SEARCH_RESULTS
    )

    return ExportConfig(
        sqlite_path=sqlite_path,
        storage_path=storage_path,
        output_dir=output_dir,
        layout_mode=layout_mode,
        max_search_results=max_search_results,
    )
