from pathlib import Path

import pytest

from chatlink.infrastructure.config import settings


@pytest.fixture(autouse=True)
def fresh_configuration(monkeypatch):
    for name in ("CHATLINK_API_BASE_URL", "API_BASE_URL", "CHATLINK_API_TOKEN", "API_TOKEN", "CHATLINK_RETRY_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    settings.reset_configuration()
    yield
    settings.reset_configuration()


def test_defaults_apply_without_configuration():
    assert settings.get_api_base_url() == "http://localhost:3000/api"
    assert settings.get_cache_ttl_seconds() == 60.0
    assert settings.get_min_request_interval() == 1.0
    assert settings.get_max_retries() == 3
    assert settings.get_retry_base_delay() == 2.0
    assert settings.get_api_token() is None


def test_yaml_file_is_flattened(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("api:\n  base_url: https://chat.example.com/api\nretry:\n  max_retries: 5\n")

    settings.load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert settings.get_api_base_url() == "https://chat.example.com/api"
    assert settings.get_max_retries() == 5


def test_environment_overrides_yaml(tmp_path: Path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("api:\n  base_url: https://from-yaml/api\n")
    monkeypatch.setenv("CHATLINK_API_BASE_URL", "https://from-env/api")

    settings.load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert settings.get_api_base_url() == "https://from-env/api"


def test_env_values_are_coerced(monkeypatch):
    monkeypatch.setenv("CHATLINK_RETRY_MAX_RETRIES", "7")
    assert settings.get_config("retry.max_retries") == 7


def test_identifiers_are_not_coerced(monkeypatch):
    monkeypatch.setenv("CHATLINK_USER_ID", "007")
    monkeypatch.setenv("CHATLINK_API_TOKEN", "12345")

    assert settings.get_user_id() == "007"
    assert settings.get_config("api.token") == "12345"


def test_test_config_has_highest_priority(monkeypatch):
    monkeypatch.setenv("CHATLINK_API_TOKEN", "from-env")
    settings.set_config_for_testing({"api.token": "from-test"})
    assert settings.get_api_token() == "from-test"
    settings.clear_test_config()
    assert settings.get_api_token() == "from-env"


def test_snapshot_dir_can_be_disabled():
    settings.set_config_for_testing({"snapshot.dir": "none"})
    assert settings.get_snapshot_dir() is None


def test_invalid_yaml_is_ignored(tmp_path: Path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("api: [unclosed\n")

    settings.load_configuration(config_file=config_file, env_file=tmp_path / "missing.env")

    assert settings.get_api_base_url() == "http://localhost:3000/api"
