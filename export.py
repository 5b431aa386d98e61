from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas

from inventory import Book

EXPORT_COLUMNS = ["id", "title", "author", "available"]


def books_frame(books: Iterable[Book]) -> pandas.DataFrame:
    records = [
        {"id": book.id, "title": book.title, "author": book.author, "available": book.available}
        for book in books
    ]
    return pandas.DataFrame(records, columns=EXPORT_COLUMNS)


def export_books(books: Iterable[Book], path: Path) -> Path:
    """Write the books to a spreadsheet; ``.xlsx`` needs openpyxl, anything else is CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = books_frame(books)
    if path.suffix.lower() == ".xlsx":
        frame.to_excel(path, index=False)
    else:
        frame.to_csv(path, index=False)
    return path
