# tests/test_config.py

import pytest

import overflow_encode.config as config_module
from overflow_encode.config import Config, RegionSettings
from overflow_encode.errors import ConfigurationError


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *a, **kw: False)


def test_defaults(region_env):
    config = Config.from_env()

    assert config.queue_threshold == 3
    assert config.encoder_name == "Media Encoder Standard"
    assert config.encode_profile == "Content Adaptive Multiple Bitrate MP4"
    assert config.manifest_extension == ".ism"
    assert config.primary_file_fallback == "none"
    assert config.abort_copy_back_on_job_failure is True
    assert config.fail_on_partial_copy is True
    assert config.delete_backup_artifacts is True


def test_region_settings(region_env):
    config = Config.from_env()

    assert config.primary.name == "primary"
    assert config.primary.aws_region == "us-east-1"
    assert config.primary.bucket == "primary-media"
    assert config.primary.storage_prefix == "encodes"
    assert config.backup.bucket == "backup-media"
    assert config.backup.storage_prefix == ""
    assert config.backup.jobs_table == "overflow_encode_jobs"


def test_overrides(region_env, monkeypatch):
    monkeypatch.setenv("QUEUE_THRESHOLD", "10")
    monkeypatch.setenv("PRIMARY_FILE_FALLBACK", "FIRST")
    monkeypatch.setenv("DELETE_BACKUP_ARTIFACTS", "no")
    monkeypatch.setenv("BACKUP_JOBS_TABLE", "dr_jobs")

    config = Config.from_env()

    assert config.queue_threshold == 10
    assert config.primary_file_fallback == "first"
    assert config.delete_backup_artifacts is False
    assert config.backup.jobs_table == "dr_jobs"


def test_missing_region_settings(region_env, monkeypatch):
    monkeypatch.delenv("BACKUP_STORAGE_URL")

    with pytest.raises(ConfigurationError) as exc:
        Config.from_env()
    assert "BACKUP_STORAGE_URL" in str(exc.value)


def test_access_key_without_secret(region_env, monkeypatch):
    monkeypatch.setenv("PRIMARY_AWS_ACCESS_KEY_ID", "AKIA0000")

    with pytest.raises(ConfigurationError):
        Config.from_env()


def test_bad_storage_url(region_env, monkeypatch):
    monkeypatch.setenv("PRIMARY_STORAGE_URL", "https://primary-media")

    with pytest.raises(ConfigurationError):
        RegionSettings.from_env("primary")


@pytest.mark.parametrize(
    "key, value",
    [
        ("QUEUE_THRESHOLD", "many"),
        ("QUEUE_THRESHOLD", "-1"),
        ("PRIMARY_FILE_FALLBACK", "random"),
        ("LOG_FORMAT", "xml"),
    ],
)
def test_invalid_values(region_env, monkeypatch, key, value):
    monkeypatch.setenv(key, value)

    with pytest.raises(ConfigurationError):
        Config.from_env()
