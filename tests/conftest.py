from __future__ import annotations

from pathlib import Path

import pytest

from config import DatabaseConfig
from database import ConnectionProvider
from inventory import BookRepository


@pytest.fixture
def provider(tmp_path: Path) -> ConnectionProvider:
    config = DatabaseConfig(url=f"jdbc:sqlite:{tmp_path / 'library.db'}")
    test_provider = ConnectionProvider(config)
    assert test_provider.initialize_database()
    yield test_provider
    test_provider.close()


@pytest.fixture
def reported() -> list:
    return []


@pytest.fixture
def repository(provider: ConnectionProvider, reported: list) -> BookRepository:
    return BookRepository(provider, on_error=reported.append)
