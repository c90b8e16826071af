"""Global test configuration and fixtures."""

from __future__ import annotations

import os
import uuid

import pytest

import lakeshelf.settings as settings
from lakeshelf.storage import DataLakeContext


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test without LAKESHELF_ variables or a local lakeshelf.yaml."""
    for name in list(os.environ):
        if name.startswith("LAKESHELF_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def memory_settings() -> settings.LakeshelfSettings:
    """Settings for an in-memory store with a file system unique to the test.

    The fsspec memory store is process-wide, so each test gets its own
    container name.
    """
    return settings.LakeshelfSettings(
        connection_string="memory://",
        file_system=f"test-{uuid.uuid4().hex[:12]}",
        upload={"retry_delay": 0},
    )


@pytest.fixture
def context(memory_settings) -> DataLakeContext:
    return DataLakeContext(memory_settings)
