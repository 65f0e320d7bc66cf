"""
Settings loader tests
Check the multi-level priority: environment file, default file, hard-coded defaults, then env overrides
"""
import logging

import pytest
import yaml

from whodb.e2e.matrix.errors import UnknownCategoryError
from whodb.e2e.matrix.settings import (
    DEFAULT_FIXTURES_DIR,
    ENV_CONFIG_PATH,
    MatrixSettings,
    apply_environment,
    load_config,
    load_config_from_file,
    load_settings,
)


def test_defaults_without_any_file(tmp_path):
    """No file and no environment leaves the hard-coded defaults"""
    settings = load_settings(environ={}, cwd=tmp_path)
    assert settings == MatrixSettings()
    assert settings.fixtures_dirs == [DEFAULT_FIXTURES_DIR]
    assert settings.target_database is None


def test_default_toml_file_wins_over_yaml(tmp_path):
    (tmp_path / "whodb-e2e.toml").write_text('[matrix]\ntarget_database = "toml"\n', encoding="utf-8")
    (tmp_path / "whodb-e2e.yaml").write_text("target_database: yaml\n", encoding="utf-8")
    assert load_settings(environ={}, cwd=tmp_path).target_database == "toml"


def test_default_yaml_file(tmp_path):
    config = {'matrix': {'timeout': 2.5, 'fixtures_dirs': ["a", "b"], 'target_category': "SQL"}}
    with open(tmp_path / "whodb-e2e.yml", "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)
    settings = load_settings(environ={}, cwd=tmp_path)
    assert settings.timeout == 2.5
    assert settings.fixtures_dirs == ["a", "b"]
    assert settings.target_category == "sql"


def test_file_from_environment_variable(tmp_path):
    """The file named by the environment variable beats the default file"""
    (tmp_path / "whodb-e2e.yaml").write_text("target_database: default\n", encoding="utf-8")
    custom = tmp_path / "custom.yaml"
    custom.write_text("target_database: custom\n", encoding="utf-8")
    settings = load_settings(environ={ENV_CONFIG_PATH: str(custom)}, cwd=tmp_path)
    assert settings.target_database == "custom"


def test_missing_environment_file_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(environ={ENV_CONFIG_PATH: str(tmp_path / "absent.yaml")}, cwd=tmp_path)


def test_unsupported_file_format(tmp_path):
    path = tmp_path / "settings.ini"
    path.write_text("[matrix]\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported configuration file format"):
        load_config_from_file(path)


def test_environment_overrides(tmp_path):
    (tmp_path / "whodb-e2e.yaml").write_text("target_database: file\ntimeout: 3\n", encoding="utf-8")
    environ = {
        "DATABASE": "postgres",
        "CATEGORY": "document",
        "WHODB_E2E_TIMEOUT": "7.5",
        "WHODB_E2E_LOG_LEVEL": "debug",
    }
    settings = load_settings(environ=environ, cwd=tmp_path)
    assert settings.target_database == "postgres"
    assert settings.target_category == "document"
    assert settings.timeout == 7.5
    assert settings.numeric_log_level == logging.DEBUG


def test_enterprise_fixtures_are_appended():
    data = apply_environment({}, {"EE_FIXTURES_DIR": "ee/fixtures"})
    assert data['fixtures_dirs'] == [DEFAULT_FIXTURES_DIR, "ee/fixtures"]

    data = apply_environment({}, {"FIXTURES_DIR": "base", "EE_FIXTURES_DIR": "ee"})
    assert data['fixtures_dirs'] == ["base", "ee"]


def test_invalid_timeout_from_environment():
    with pytest.raises(ValueError, match="WHODB_E2E_TIMEOUT"):
        apply_environment({}, {"WHODB_E2E_TIMEOUT": "soon"})


def test_unknown_keys_are_ignored_with_warning(caplog):
    settings = MatrixSettings.from_dict({'target_database': "x", 'browser': "firefox"})
    assert settings.target_database == "x"
    assert "Ignoring unknown settings: browser" in caplog.text


@pytest.mark.parametrize("values,error", [
    ({'timeout': 0}, ValueError),
    ({'poll_interval': -1}, ValueError),
    ({'mock_data_max_rows': 500}, ValueError),
    ({'target_category': "graph"}, UnknownCategoryError),
])
def test_invalid_values(values, error):
    with pytest.raises(error):
        MatrixSettings(**values)


def test_all_category_is_accepted():
    assert MatrixSettings(target_category="all").target_category == "all"


def test_invalid_log_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        _ = MatrixSettings(log_level="chatty").numeric_log_level


def test_single_directory_string_and_round_trip():
    settings = MatrixSettings(fixtures_dirs="only")
    assert settings.fixtures_dirs == ["only"]
    assert MatrixSettings.from_dict(settings.to_dict()) == settings
