"""Tests for engine settings and the TOML config file."""

import logging

import pytest
import toml

from codemap import config, config_manager
from codemap.config import EngineConfig
from codemap.errors import ConfigError


def test_defaults():
    settings = EngineConfig()
    assert settings.index_depth == 3
    assert settings.exclude_dirs == ["node_modules", ".git", "dist", "build"]
    assert settings.file_extensions == [".js", ".jsx", ".ts", ".tsx"]
    assert settings.similarity_threshold == 0.7
    assert (settings.weight_title, settings.weight_description, settings.weight_keywords) == (0.3, 0.4, 0.3)
    assert settings.include_node_modules is False


def test_from_mapping_accepts_camel_case_and_ignores_unknown(caplog):
    with caplog.at_level(logging.WARNING, logger="codemap.config"):
        settings = EngineConfig.from_mapping({
            "indexDepth": 5,
            "excludeDirs": ("vendor",),
            "similarity_threshold": 0.4,
            "colour": "blue",
        })
    assert settings.index_depth == 5
    assert settings.exclude_dirs == ["vendor"]
    assert settings.similarity_threshold == 0.4
    assert "colour" in caplog.text


def test_merged_returns_copy_and_skips_none():
    base = EngineConfig()
    merged = base.merged(max_results=3, index_depth=None)
    assert merged.max_results == 3
    assert merged.index_depth == 3
    assert base.max_results == 10


def test_setting_name():
    assert config.setting_name("maxImpactedFiles") == "max_impacted_files"
    assert config.setting_name("max_depth") == "max_depth"
    assert config.setting_name("nope") is None


def test_missing_file_gives_defaults(_isolated_config):
    assert not _isolated_config.exists()
    assert config_manager.load_full_config() == {}
    assert config_manager.load_engine_config() == EngineConfig()


def test_save_and_load_preserves_other_sections(_isolated_config):
    _isolated_config.write_text('[ui]\ntheme = "dark"\n', encoding="utf-8")
    config_manager.save_engine_config(EngineConfig(max_results=4))

    data = toml.load(str(_isolated_config))
    assert data["ui"] == {"theme": "dark"}
    assert data["engine"]["max_results"] == 4
    assert config_manager.load_engine_config().max_results == 4


def test_set_engine_value_parses_toml(_isolated_config):
    """Test float, list and bare-word values."""
    assert config_manager.set_engine_value("similarityThreshold", "0.55").similarity_threshold == 0.55
    assert config_manager.set_engine_value("file_extensions", '[".js", ".mjs"]').file_extensions == [
        ".js", ".mjs",
    ]
    stored = config_manager.load_engine_config()
    assert stored.similarity_threshold == 0.55
    assert stored.file_extensions == [".js", ".mjs"]


def test_set_engine_value_unknown_key(_isolated_config):
    with pytest.raises(ConfigError):
        config_manager.set_engine_value("colour", "1")
    assert not _isolated_config.exists()


def test_set_engine_value_rejects_mistyped_values(_isolated_config):
    with pytest.raises(ConfigError, match="index_depth"):
        config_manager.set_engine_value("index_depth", "abc")
    with pytest.raises(ConfigError):
        config_manager.set_engine_value("include_node_modules", "1")
    with pytest.raises(ConfigError):
        config_manager.set_engine_value("exclude_dirs", "[1, 2]")
    assert not _isolated_config.exists()


def test_set_engine_value_widens_int_to_float(_isolated_config):
    updated = config_manager.set_engine_value("similarity_threshold", "1")
    assert updated.similarity_threshold == 1.0
    assert isinstance(updated.similarity_threshold, float)


def test_malformed_file_falls_back_to_defaults(_isolated_config, caplog):
    _isolated_config.write_text("[engine]\nmax_results = \n", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="codemap.config_manager"):
        assert config_manager.load_engine_config() == EngineConfig()
    assert "Could not read config file" in caplog.text


def test_non_table_engine_section(_isolated_config):
    _isolated_config.write_text('engine = "fast"\n', encoding="utf-8")
    assert config_manager.load_engine_config() == EngineConfig()
