import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_author_list(authors: List[Any]) -> None:
    """Print authors in the current output mode.
    - plain: 'id - Family, First (lifespan)' lines, or 'No authors in catalog.'
    - json: array of id, name, lifespan
    - rich: Rich table
    """
    mode = get_output_mode()

    if not authors:
        print("No authors in catalog.")
        return

    if mode == "json":
        payload = [{"id": a.id, "name": a.name, "lifespan": a.lifespan} for a in authors]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Authors", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Lifespan", style="white")
        for a in authors:
            table.add_row(a.id or "", a.name, a.lifespan)
        _console.print(table)
    else:
        for a in authors:
            print(f"{a.id} - {a.name} ({a.lifespan})")

def _author_name(book: Any) -> str:
    author = getattr(book, "author", None)
    return getattr(author, "name", "") or "Unknown author"

def print_book_list(books: List[Any]) -> None:
    """Print books with their resolved author in the current output mode."""
    mode = get_output_mode()

    if not books:
        print("No books in catalog.")
        return

    if mode == "json":
        payload = [{"id": b.id, "title": b.title, "author": _author_name(b)} for b in books]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        for b in books:
            table.add_row(b.id or "", b.title, _author_name(b))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {_author_name(b)}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print catalog counts in the current output mode."""
    mode = get_output_mode()

    authors = stats.get("author_count", 0)
    books = stats.get("book_count", 0)

    if mode == "json":
        print(json.dumps({"author_count": authors, "book_count": books}, ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]Authors:[/] {authors}\n[bold]Books:[/] {books}"
        _console.print(Panel.fit(content, title="Catalog", border_style="blue"))
    else:
        print(f"Authors: {authors}")
        print(f"Books: {books}")
