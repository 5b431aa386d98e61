from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import ConfigurationError, DatabaseConfig, load_config


def _write_properties(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "database.properties"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_load_config_reads_properties(tmp_path: Path) -> None:
    path = _write_properties(
        tmp_path,
        """
        # library settings
        db.url=jdbc:sqlite:data/library.db
        db.user=librarian
        db.password=s3cret
        """,
    )

    config = load_config(path, environ={})

    assert config.url == "jdbc:sqlite:data/library.db"
    assert config.user == "librarian"
    assert config.password == "s3cret"
    assert config.database_path == "data/library.db"


def test_load_config_defaults_user_and_password(tmp_path: Path) -> None:
    path = _write_properties(tmp_path, "db.url=jdbc:sqlite:library.db\n")

    config = load_config(path, environ={})

    assert config.user == "root"
    assert config.password == ""


def test_blank_properties_are_kept_blank(tmp_path: Path) -> None:
    path = _write_properties(
        tmp_path,
        """
        db.url=jdbc:sqlite:library.db
        db.user=
        db.password=
        """,
    )

    config = load_config(path, environ={})

    assert config.user == ""
    assert config.password == ""


def test_environment_overrides_properties(tmp_path: Path) -> None:
    path = _write_properties(
        tmp_path,
        """
        db.url=jdbc:sqlite:library.db
        db.user=librarian
        db.password=s3cret
        """,
    )

    config = load_config(path, environ={"DB_USER": "admin", "DB_PASSWORD": ""})

    assert config.user == "admin"
    assert config.password == ""


def test_properties_path_from_environment(tmp_path: Path) -> None:
    path = _write_properties(tmp_path, "db.url=sqlite:///elsewhere.db\n")

    config = load_config(environ={"LIBRARY_DB_PROPERTIES": str(path)})

    assert config.database_path == "elsewhere.db"


def test_missing_properties_file_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="database.properties"):
        load_config(tmp_path / "database.properties", environ={})


def test_missing_url_is_a_configuration_error(tmp_path: Path) -> None:
    path = _write_properties(tmp_path, "db.user=root\n")

    with pytest.raises(ConfigurationError, match="db.url"):
        load_config(path, environ={})


def test_unsupported_driver_is_a_configuration_error(tmp_path: Path) -> None:
    path = _write_properties(tmp_path, "db.url=jdbc:mysql://localhost:3306/library\n")

    with pytest.raises(ConfigurationError, match="only SQLite"):
        load_config(path, environ={})


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("jdbc:sqlite:library.db", "library.db"),
        ("sqlite:library.db", "library.db"),
        ("sqlite:///library.db", "library.db"),
        ("sqlite:////var/lib/library.db", "/var/lib/library.db"),
        ("sqlite://", ":memory:"),
        ("jdbc:sqlite::memory:", ":memory:"),
    ],
)
def test_database_path_forms(url: str, expected: str) -> None:
    assert DatabaseConfig(url=url).database_path == expected


def test_blank_url_fails_validation() -> None:
    with pytest.raises(ValidationError):
        DatabaseConfig(url="   ")
