# tests/conftest.py
"""
Global test bootstrap
- Keeps the environment free of real AWS settings so nothing reaches AWS
- Pulls in the in-memory region fixtures
"""

import os

import pytest

for _key in list(os.environ):
    if _key.startswith(("PRIMARY_", "BACKUP_")):
        del os.environ[_key]

os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from tests.fixtures.regions import *  # noqa: F401,F403,E402


@pytest.fixture
def region_env(monkeypatch):
    """Minimal valid environment for Config.from_env"""
    values = {
        "PRIMARY_AWS_REGION": "us-east-1",
        "PRIMARY_JOB_QUEUE_URL": "https://sqs.us-east-1.amazonaws.com/123456789012/primary-encode",
        "PRIMARY_STORAGE_URL": "s3://primary-media/encodes",
        "BACKUP_AWS_REGION": "us-west-2",
        "BACKUP_JOB_QUEUE_URL": "https://sqs.us-west-2.amazonaws.com/123456789012/backup-encode",
        "BACKUP_STORAGE_URL": "s3://backup-media",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values
