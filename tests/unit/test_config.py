"""Tests for configuration loading."""

from argparse import Namespace
from pathlib import Path

import pytest

from zotero_bundle.zb_config import DEFAULT_MAX_SEARCH_RESULTS, clean_value, load_config
from zotero_bundle.zb_errors import ConfigError


def make_args(**overrides):
    values = dict(sqlite=None, storage=None, output_dir=None, layout=None, limit=None)
    values.update(overrides)
    return Namespace(**values)


class TestCleanValue:
    """Tests for clean_value."""

    @pytest.mark.parametrize("raw,expected", [
        ("flat", "flat"),
        ("'flat'", "flat"),
        ('"flat"', "flat"),
        ("  flat  ", "flat"),
        ("", None),
        ("  ''  ", None),
        (None, None),
    ])
    def test_clean_value(self, raw, expected):
        assert clean_value(raw) == expected


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, tmp_path):
        config = load_config(make_args(sqlite=str(tmp_path / "zotero.sqlite")), env={})

        assert config.sqlite_path == (tmp_path / "zotero.sqlite").resolve()
        assert config.storage_path == (tmp_path / "storage").resolve()
        assert config.output_dir == Path("./zotero_export").resolve()
        assert config.layout_mode == "item-folder"
        assert config.max_search_results == DEFAULT_MAX_SEARCH_RESULTS
        assert config.now is None

    def test_default_sqlite_under_home(self):
        config = load_config(None, env={})
        assert config.sqlite_path == (Path.home() / "Zotero" / "zotero.sqlite").resolve()

    def test_environment(self, tmp_path):
        env = {
            "ZOTERO_SQLITE_PATH": f"'{tmp_path / 'db.sqlite'}'",
            "ZOTERO_STORAGE_PATH": str(tmp_path / "files"),
            "ZOTERO_EXPORT_DIR": str(tmp_path / "out"),
            "ZOTERO_LAYOUT_MODE": '"flat"',
            "ZOTERO_MAX_SEARCH_RESULTS": "25",
        }
        config = load_config(make_args(), env=env)

        assert config.sqlite_path == (tmp_path / "db.sqlite").resolve()
        assert config.storage_path == (tmp_path / "files").resolve()
        assert config.output_dir == (tmp_path / "out").resolve()
        assert config.layout_mode == "flat"
        assert config.max_search_results == 25

    def test_flags_override_environment(self, tmp_path):
        env = {"ZOTERO_LAYOUT_MODE": "flat", "ZOTERO_MAX_SEARCH_RESULTS": "25"}
        config = load_config(make_args(layout="year-item", limit=5), env=env)

        assert config.layout_mode == "year-item"
        assert config.max_search_results == 5

    def test_invalid_layout(self):
        with pytest.raises(ConfigError, match="layout mode"):
            load_config(make_args(), env={"ZOTERO_LAYOUT_MODE": "nested"})

    @pytest.mark.parametrize("limit", ["many", "0", "-3"])
    def test_invalid_limit(self, limit):
        with pytest.raises(ConfigError, match="ZOTERO_MAX_SEARCH_RESULTS"):
            load_config(make_args(), env={"ZOTERO_MAX_SEARCH_RESULTS": limit})
