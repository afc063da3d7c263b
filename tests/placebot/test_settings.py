"""Tests for YAML + environment settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from placebot.core.exceptions import ConfigurationError
from placebot.settings import Settings, load_settings
from placebot.utils.config_loader import ConfigLoader


CONFIG = """
database_path: data/test.db
retry:
  max_attempts: 5
media:
  max_photos: 3
scoring:
  has_website: 3
  view_tiers:
    - {threshold: 500, points: 2}
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "placebot.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


def test_defaults_without_file(tmp_path):
    settings = load_settings(environ={"PLACEBOT_CONFIG": str(tmp_path / "absent.yaml")})

    assert settings.retry.max_attempts == 3
    assert settings.encyclopedia.primary_language == "fr"
    assert settings.scoring.photos_fetched_bump == 2
    assert settings.google_places_api_key is None


def test_yaml_values_override_defaults(config_file):
    settings = load_settings(config_file, environ={})

    assert settings.database_path == Path("data/test.db")
    assert settings.retry.max_attempts == 5
    assert settings.retry.base_delay == 2.0
    assert settings.media.max_photos == 3
    assert settings.scoring.has_website == 3
    assert [(t.threshold, t.points) for t in settings.scoring.view_tiers] == [(500, 2)]


def test_environment_overrides_yaml(config_file):
    settings = load_settings(config_file, environ={
        "PLACEBOT_DB_PATH": "/srv/catalog.db",
        "PLACEBOT_CACHE_DIR": "/tmp/placebot-cache",
        "GOOGLE_PLACES_API_KEY": "key-123",
        "SCORE_ENHANCEMENT_WEBSITE": "5",
        "SCORE_BUMP_PHOTOS_FETCHED": "not-a-number",
    })

    assert settings.database_path == Path("/srv/catalog.db")
    assert settings.cache.directory == Path("/tmp/placebot-cache")
    assert settings.require_google_places_key() == "key-123"
    assert settings.scoring.has_website == 5
    # Invalid integers are ignored
    assert settings.scoring.photos_fetched_bump == 2


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml", environ={})


def test_unknown_keys_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("media:\n  max_photo: 3\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_settings(path, environ={})


def test_missing_google_key():
    with pytest.raises(ConfigurationError, match="GOOGLE_PLACES_API_KEY"):
        Settings().require_google_places_key()


def test_config_loader_dot_access(config_file):
    loader = ConfigLoader(config_file)

    assert loader.get("retry.max_attempts") == 5
    assert loader.get("retry.missing", "fallback") == "fallback"
    assert loader.as_dict()["media"] == {"max_photos": 3}


def test_config_loader_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError):
        ConfigLoader(path)
