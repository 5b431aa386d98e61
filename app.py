from __future__ import annotations

import logging
import sys
import tkinter as tk
from pathlib import Path
from tkinter import filedialog, messagebox, ttk
from typing import Any, Callable, List

from config import ConfigurationError, configure_logging, load_config
from controller import ActionState, LibraryController
from database import ConnectionProvider, prepare_database
from inventory import Book, BookRepository
from worker import TaskRunner

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Main window
# --------------------------------------------------------------------------- #
class LibraryApplication(tk.Tk):
    def __init__(self, provider: ConnectionProvider):
        super().__init__()
        self.title("Library Management System")
        self.geometry("820x560")
        self.minsize(640, 420)

        self.provider = provider
        self._closed = False
        self.status_var = tk.StringVar(value="Ready.")
        self.runner = TaskRunner(dispatch=self._dispatch)
        self.repository = BookRepository(provider, on_error=self._report_error)
        self.controller = LibraryController(self.repository, self, self.runner)

        self._build_ui()
        self.protocol("WM_DELETE_WINDOW", self.on_close)
        self.set_actions(ActionState())
        self.controller.refresh()

    def _dispatch(self, callback: Callable[[Any], None], result: Any) -> None:
        self._schedule(callback, result)

    def _report_error(self, message: str) -> None:
        self._schedule(self.set_status, message)

    def _schedule(self, func: Callable[[Any], None], arg: Any) -> None:
        # Called from the worker thread; the window may already be gone.
        if self._closed:
            return
        try:
            self.after(0, func, arg)
        except (tk.TclError, RuntimeError) as error:
            logger.debug("Dropped UI update after close: %s", error)

    def _build_ui(self) -> None:
        container = ttk.Frame(self, padding=12)
        container.pack(fill="both", expand=True)
        container.columnconfigure(0, weight=1)
        container.rowconfigure(2, weight=1)

        form = ttk.LabelFrame(container, text="Add New Book", padding=8)
        form.grid(row=0, column=0, sticky="ew")
        form.columnconfigure(1, weight=1)

        ttk.Label(form, text="Title:").grid(row=0, column=0, sticky="w", pady=2)
        self.title_var = tk.StringVar()
        self.title_entry = ttk.Entry(form, textvariable=self.title_var)
        self.title_entry.grid(row=0, column=1, sticky="ew", padx=(4, 0), pady=2)
        self.title_entry.bind("<Return>", lambda _event: self._add_book())

        ttk.Label(form, text="Author:").grid(row=1, column=0, sticky="w", pady=2)
        self.author_var = tk.StringVar()
        self.author_entry = ttk.Entry(form, textvariable=self.author_var)
        self.author_entry.grid(row=1, column=1, sticky="ew", padx=(4, 0), pady=2)
        self.author_entry.bind("<Return>", lambda _event: self._add_book())

        self.add_button = ttk.Button(form, text="Add Book", underline=0, command=self._add_book)
        self.add_button.grid(row=2, column=0, columnspan=2, pady=(8, 0))

        search = ttk.Frame(container)
        search.grid(row=1, column=0, sticky="ew", pady=(10, 6))
        search.columnconfigure(1, weight=1)

        ttk.Label(search, text="Search:").grid(row=0, column=0, sticky="w")
        self.search_var = tk.StringVar()
        search_entry = ttk.Entry(search, textvariable=self.search_var)
        search_entry.grid(row=0, column=1, sticky="ew", padx=(4, 0))
        search_entry.bind("<Return>", lambda _event: self._search())

        self.search_button = ttk.Button(search, text="Search", underline=0, command=self._search)
        self.search_button.grid(row=0, column=2, padx=(8, 0))
        self.refresh_button = ttk.Button(search, text="Refresh", command=self._refresh)
        self.refresh_button.grid(row=0, column=3, padx=(6, 0))

        body = ttk.Frame(container)
        body.grid(row=2, column=0, sticky="nsew")
        body.columnconfigure(0, weight=1)
        body.rowconfigure(0, weight=1)

        columns = ("id", "title", "author", "status")
        self.tree = ttk.Treeview(body, columns=columns, show="headings", selectmode="browse")
        for column, heading in zip(columns, ("ID", "Title", "Author", "Status")):
            self.tree.heading(
                column, text=heading, command=lambda c=column: self.controller.sort_by(c)
            )
        self.tree.column("id", width=60, anchor="center")
        self.tree.column("title", width=300, anchor="w")
        self.tree.column("author", width=220, anchor="w")
        self.tree.column("status", width=120, anchor="center")
        self.tree.grid(row=0, column=0, sticky="nsew")
        self.tree.bind("<<TreeviewSelect>>", self._on_select_book)

        tree_scroll = ttk.Scrollbar(body, orient="vertical", command=self.tree.yview)
        tree_scroll.grid(row=0, column=1, sticky="ns")
        self.tree.configure(yscrollcommand=tree_scroll.set)

        button_frame = ttk.Frame(container)
        button_frame.grid(row=3, column=0, sticky="ew", pady=(10, 0))

        self.borrow_button = ttk.Button(
            button_frame,
            text="Borrow Book",
            underline=0,
            command=self.controller.borrow_selected,
            state="disabled",
        )
        self.borrow_button.grid(row=0, column=0, padx=(0, 6))

        self.return_button = ttk.Button(
            button_frame,
            text="Return Book",
            underline=0,
            command=self.controller.return_selected,
            state="disabled",
        )
        self.return_button.grid(row=0, column=1, padx=(0, 6))

        self.delete_button = ttk.Button(
            button_frame,
            text="Delete Book",
            underline=0,
            command=self.controller.delete_selected,
            state="disabled",
        )
        self.delete_button.grid(row=0, column=2, padx=(0, 6))

        ttk.Button(button_frame, text="Export…", command=self._export).grid(row=0, column=3)

        status_bar = ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(8, 4))
        status_bar.pack(side="bottom", fill="x")

        self.bind_all("<Alt-a>", lambda _event: self._add_book())
        self.bind_all("<Alt-b>", lambda _event: self._invoke(self.borrow_button))
        self.bind_all("<Alt-r>", lambda _event: self._invoke(self.return_button))
        self.bind_all("<Alt-d>", lambda _event: self._invoke(self.delete_button))
        self.bind_all("<Alt-s>", lambda _event: self._search())

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    @staticmethod
    def _invoke(button: ttk.Button) -> None:
        if button.instate(["!disabled"]):
            button.invoke()

    def _add_book(self) -> None:
        self.controller.add_book(self.title_var.get(), self.author_var.get())

    def _search(self) -> None:
        self.controller.search(self.search_var.get())

    def _refresh(self) -> None:
        self.search_var.set("")
        self.controller.refresh()

    def _on_select_book(self, _event: tk.Event) -> None:
        selection = self.tree.selection()
        self.controller.select(int(selection[0]) if selection else None)

    def _export(self) -> None:
        filename = filedialog.asksaveasfilename(
            parent=self,
            title="Export books",
            defaultextension=".csv",
            filetypes=[("CSV", "*.csv"), ("Excel workbook", "*.xlsx")],
        )
        if filename:
            self.controller.export(Path(filename))

    # ------------------------------------------------------------------
    # View interface used by LibraryController
    # ------------------------------------------------------------------
    def render(self, books: List[Book]) -> None:
        selected = self.controller.selected_id
        self.tree.delete(*self.tree.get_children())
        for book in books:
            self.tree.insert(
                "",
                "end",
                iid=str(book.id),
                values=(book.id, book.title, book.author, book.status),
            )
        if selected is not None and str(selected) in self.tree.get_children(""):
            self.tree.selection_set(str(selected))
            self.tree.focus(str(selected))

    def set_actions(self, state: ActionState) -> None:
        self.borrow_button.configure(state="normal" if state.borrow else "disabled")
        self.return_button.configure(state="normal" if state.return_ else "disabled")
        self.delete_button.configure(state="normal" if state.delete else "disabled")

    def set_status(self, message: str) -> None:
        self.status_var.set(message)

    def clear_form(self) -> None:
        self.title_var.set("")
        self.author_var.set("")
        self.title_entry.focus_set()

    def show_info(self, title: str, message: str) -> None:
        messagebox.showinfo(title, message, parent=self)

    def show_warning(self, title: str, message: str) -> None:
        messagebox.showwarning(title, message, parent=self)

    def show_error(self, title: str, message: str) -> None:
        messagebox.showerror(title, message, parent=self)

    def confirm(self, title: str, message: str) -> bool:
        return messagebox.askyesno(title, message, parent=self)

    def on_close(self) -> None:
        self._closed = True
        try:
            self.runner.shutdown(wait=False)
            self.provider.close()
        finally:
            self.destroy()


# --------------------------------------------------------------------------- #
# Startup
# --------------------------------------------------------------------------- #
def _show_startup_error(title: str, message: str) -> None:
    root = tk.Tk()
    root.withdraw()
    try:
        messagebox.showerror(title, message, parent=root)
    finally:
        root.destroy()


def main() -> int:
    configure_logging()
    try:
        config = load_config()
    except ConfigurationError as error:
        logger.error("%s", error)
        _show_startup_error("Database Error", str(error))
        return 1

    provider = prepare_database(config)
    if provider is None:
        _show_startup_error(
            "Database Error",
            "Could not connect to database. Please check your database settings.",
        )
        return 1

    logger.info("Starting Library Management System")
    app = LibraryApplication(provider)
    app.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
