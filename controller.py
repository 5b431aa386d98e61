from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from export import export_books
from inventory import Book, BookRepository, Duplicate, Failure, NotFound, Ok, Result

logger = logging.getLogger(__name__)


class SelectionState(enum.Enum):
    NONE = "none"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ActionState:
    borrow: bool = False
    return_: bool = False
    delete: bool = False


def selection_state(book: Optional[Book]) -> SelectionState:
    if book is None:
        return SelectionState.NONE
    return SelectionState.AVAILABLE if book.available else SelectionState.UNAVAILABLE


def actions_for(book: Optional[Book]) -> ActionState:
    state = selection_state(book)
    if state is SelectionState.NONE:
        return ActionState()
    return ActionState(
        borrow=state is SelectionState.AVAILABLE,
        return_=state is SelectionState.UNAVAILABLE,
        delete=True,
    )


_SORT_KEYS = {
    "id": lambda book: book.id if book.id is not None else 0,
    "title": lambda book: book.title.casefold(),
    "author": lambda book: book.author.casefold(),
    "status": lambda book: book.status,
}


def sort_books(books: List[Book], column: str, descending: bool = False) -> List[Book]:
    """Order ``books`` by one of the table columns; ties keep their incoming order."""
    try:
        key = _SORT_KEYS[column]
    except KeyError:
        raise ValueError(f"cannot sort by {column!r}") from None
    return sorted(books, key=key, reverse=descending)


@dataclass(frozen=True)
class Refused:
    """A borrow/return that does not apply to the book's current status."""

    reason: str
    ok = False

    def __bool__(self) -> bool:
        return False


class LibraryController:
    """Dispatches user actions to the repository and re-renders the view.

    The view is anything with ``render``, ``set_status``, ``set_actions``,
    ``clear_form``, ``show_info``, ``show_warning``, ``show_error`` and
    ``confirm``. All repository work goes through ``runner`` so the view's
    thread never waits on the database.
    """

    def __init__(self, repository: BookRepository, view: Any, runner: Any):
        self.repository = repository
        self.view = view
        self.runner = runner
        self.books: List[Book] = []
        self.selected_id: Optional[int] = None
        self.sort_column: Optional[str] = None
        self.sort_descending = False

    # ------------------------------------------------------------------
    # Rendering and selection
    # ------------------------------------------------------------------
    @property
    def selected_book(self) -> Optional[Book]:
        if self.selected_id is None:
            return None
        return next((b for b in self.books if b.id == self.selected_id), None)

    def select(self, book_id: Optional[int]) -> None:
        self.selected_id = book_id
        if self.selected_book is None:
            self.selected_id = None
        self.view.set_actions(actions_for(self.selected_book))

    def refresh(self) -> None:
        self.runner.submit(self.repository.list_all, callback=self._show_all)

    def _show_all(self, books: Any) -> None:
        if not isinstance(books, list):
            self.view.show_error("Database Error", getattr(books, "message", str(books)))
            books = []
        self._render(books)
        self.view.set_status(f"{len(books)} book(s) in the library.")

    def _render(self, books: List[Book]) -> None:
        self.books = list(books)
        if self.sort_column is not None:
            self.books = sort_books(self.books, self.sort_column, self.sort_descending)
        self.view.render(self.books)
        self.select(self.selected_id)

    def sort_by(self, column: str) -> None:
        """Sort the shown books by ``column``; a second click reverses the order."""
        if column not in _SORT_KEYS:
            raise ValueError(f"cannot sort by {column!r}")
        if column == self.sort_column:
            self.sort_descending = not self.sort_descending
        else:
            self.sort_column = column
            self.sort_descending = False
        self._render(self.books)

    def search(self, term: str) -> None:
        term = term.strip()
        if not term:
            self.refresh()
            return
        self.runner.submit(
            self.repository.search, term, callback=lambda books: self._show_matches(term, books)
        )

    def _show_matches(self, term: str, books: Any) -> None:
        if not isinstance(books, list):
            books = []
        self._render(books)
        self.view.set_status(f"{len(books)} book(s) matching '{term}'.")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_book(self, title: str, author: str) -> None:
        title = title.strip()
        author = author.strip()
        if not title or not author:
            self.view.show_warning("Input Error", "Both Title and Author fields are required.")
            return
        self.view.set_status(f"Adding '{title}'…")
        self.runner.submit(self.repository.insert, Book(title, author), callback=self._on_added)

    def _on_added(self, result: Result) -> None:
        if isinstance(result, Ok):
            self.view.clear_form()
            self.view.show_info("Success", "Book added successfully!")
        elif isinstance(result, Duplicate):
            self.view.show_warning("Duplicate Entry", result.message)
        else:
            self._show_failure(result)
        self.refresh()

    def borrow_selected(self) -> None:
        self._change_availability(False)

    def return_selected(self) -> None:
        self._change_availability(True)

    def _change_availability(self, available: bool) -> None:
        book = self.selected_book
        if book is None:
            return
        self.runner.submit(
            self._set_availability,
            book.id,
            available,
            callback=lambda result: self._on_availability(result, available),
        )

    def _set_availability(self, book_id: int, available: bool) -> Any:
        current = self.repository.get_by_id(book_id)
        if current is None:
            return NotFound()
        if current.available == available:
            if available:
                return Refused("This book is already available.")
            return Refused("This book is already borrowed.")
        return self.repository.update_availability(book_id, available)

    def _on_availability(self, result: Any, available: bool) -> None:
        if isinstance(result, Ok):
            message = "Book returned successfully!" if available else "Book borrowed successfully!"
            self.view.show_info("Success", message)
        elif isinstance(result, Refused):
            self.view.show_info("Cannot Return" if available else "Cannot Borrow", result.reason)
        elif isinstance(result, NotFound):
            self.view.show_warning("Not Found", "The selected book no longer exists.")
        else:
            self._show_failure(result)
        self.refresh()

    def delete_selected(self) -> None:
        book = self.selected_book
        if book is None:
            return
        if not self.view.confirm(
            "Confirm Deletion", f"Are you sure you want to delete the book: {book.title}?"
        ):
            return
        self.runner.submit(self.repository.delete, book.id, callback=self._on_deleted)

    def _on_deleted(self, result: Result) -> None:
        if isinstance(result, Ok):
            self.selected_id = None
            self.view.show_info("Success", "Book deleted successfully!")
        elif isinstance(result, NotFound):
            self.view.show_warning("Not Found", "The selected book no longer exists.")
        else:
            self._show_failure(result)
        self.refresh()

    def export(self, path: Path) -> None:
        books = list(self.books)
        self.runner.submit(self._export, books, path, callback=self._on_exported)

    def _export(self, books: List[Book], path: Path) -> Any:
        try:
            return Ok(export_books(books, path))
        except (OSError, ValueError, ImportError) as error:
            logger.error("Export to %s failed: %s", path, error)
            return Failure(f"Could not export books: {error}")

    def _on_exported(self, result: Result) -> None:
        if isinstance(result, Ok):
            self.view.set_status(f"Exported books to {result.value}.")
        else:
            self._show_failure(result)

    def _show_failure(self, result: Any) -> None:
        reason = result.reason if isinstance(result, Failure) else str(result)
        self.view.show_error("Database Error", reason)
