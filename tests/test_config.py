import json

import pytest
from loguru import logger

from typespeed import (
    DEFAULT_WORD_TARGET,
    THEMES,
    Settings,
    build_parser,
    configure_logging,
    load_config,
)


def test_missing_config_is_empty(tmp_path):
    assert load_config(tmp_path / "nope.json") == {}


def test_config_is_read(tmp_path):
    path = tmp_path / "typespeed.config.json"
    path.write_text(json.dumps({"words": 50, "theme": "mint"}), encoding="utf-8")
    assert load_config(path) == {"words": 50, "theme": "mint"}


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_bad_config_falls_back_to_defaults(tmp_path, content):
    path = tmp_path / "typespeed.config.json"
    path.write_text(content, encoding="utf-8")
    assert load_config(path) == {}


def test_settings_defaults():
    settings = Settings.from_config({})
    assert settings.word_target == DEFAULT_WORD_TARGET
    assert settings.theme_name == "mono"
    assert settings.palette == THEMES["mono"]
    assert settings.log_level == "INFO"


def test_settings_from_config():
    settings = Settings.from_config({"words": "45", "theme": "ember", "log_level": "debug"})
    assert settings.word_target == 45
    assert settings.palette["title"] == THEMES["ember"]["title"]
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("words", [0, -3, "many", None])
def test_invalid_word_target_uses_default(words):
    assert Settings.from_config({"words": words}).word_target == DEFAULT_WORD_TARGET


def test_unknown_theme_and_level_are_ignored():
    settings = Settings.from_config({"theme": "neon", "log_level": "loud"})
    assert settings.theme_name == "mono"
    assert settings.log_level == "INFO"


def test_extra_themes_extend_mono():
    settings = Settings.from_config({"themes": {"neon": {"correct": "#00ff00"}}, "theme": "neon"})
    assert settings.palette["correct"] == "#00ff00"
    assert settings.palette["error"] == THEMES["mono"]["error"]
    assert "neon" not in THEMES


def test_parser_number_flag():
    parser = build_parser()
    assert parser.parse_args([]).number is None
    assert parser.parse_args(["-n", "12"]).number == 12
    assert parser.parse_args(["--number", "3"]).number == 3


@pytest.mark.parametrize("value", ["0", "-1", "ten"])
def test_parser_rejects_bad_number(value):
    with pytest.raises(SystemExit):
        build_parser().parse_args(["-n", value])


def test_configure_logging_writes_to_file(tmp_path, monkeypatch):
    monkeypatch.delenv("TYPESPEED_LOG_LEVEL", raising=False)
    path = tmp_path / "logs" / "typespeed.log"
    configure_logging("DEBUG", path)
    try:
        logger.debug("rotated line 1")
    finally:
        logger.remove()
    assert "rotated line 1" in path.read_text(encoding="utf-8")


def test_unknown_env_log_level_falls_back(tmp_path, monkeypatch):
    monkeypatch.setenv("TYPESPEED_LOG_LEVEL", "verbose")
    path = tmp_path / "typespeed.log"
    configure_logging("INFO", path)
    try:
        logger.debug("hidden at info")
        logger.info("kept at info")
    finally:
        logger.remove()
    content = path.read_text(encoding="utf-8")
    assert "Ignoring unknown TYPESPEED_LOG_LEVEL 'VERBOSE', using INFO" in content
    assert "kept at info" in content
    assert "hidden at info" not in content


def test_env_log_level_overrides_config(tmp_path, monkeypatch):
    monkeypatch.setenv("TYPESPEED_LOG_LEVEL", "debug")
    path = tmp_path / "typespeed.log"
    configure_logging("WARNING", path)
    try:
        logger.debug("shown at debug")
    finally:
        logger.remove()
    assert "shown at debug" in path.read_text(encoding="utf-8")
