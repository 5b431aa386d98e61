from __future__ import annotations

import tkinter as tk

import pytest

from app import LibraryApplication
from database import ConnectionProvider


@pytest.fixture
def app(provider: ConnectionProvider):
    try:
        window = LibraryApplication(provider)
    except tk.TclError as error:
        pytest.skip(f"no display available: {error}")
    window.withdraw()
    yield window
    if not window._closed:
        window.on_close()


def test_enter_in_either_form_field_adds_the_book(app: LibraryApplication) -> None:
    for entry in (app.title_entry, app.author_entry):
        assert entry.bind("<Return>")

    app.title_var.set("Dune")
    app.author_var.set("Herbert")
    app._add_book()
    app.runner.join()

    assert [b.title for b in app.repository.list_all()] == ["Dune"]


def test_headings_sort_the_table(app: LibraryApplication) -> None:
    command = app.tree.heading("title", "command")
    assert command

    app.tk.call(command)
    assert app.controller.sort_column == "title"
    assert app.controller.sort_descending is False

    app.tk.call(command)
    assert app.controller.sort_descending is True


def test_no_ui_updates_after_close(app: LibraryApplication) -> None:
    delivered = []

    app.on_close()
    app._dispatch(delivered.append, "late result")
    app._report_error("late error")

    assert delivered == []
