import asyncio
import json
import logging
import os
import subprocess
import sys
import webbrowser
from pathlib import Path
from typing import Optional, List, Dict, Any

import typer
from rich.console import Console

from author import Author
from book import Book
from catalog import Catalog
from config import settings
from database import DocumentStore, StoreFailure
from utils.ui_helpers import set_output_mode, print_author_list, print_book_list, print_stats_result
from utils.validators import validate_author, validate_book

APP_NAME = "Catalog CLI"

console = Console()
logger = logging.getLogger(__name__)


class CatalogManager:
    """Lazily created Catalog shared by the CLI commands."""
    _instance: Optional[Catalog] = None
    _db_file: Optional[str] = None

    @classmethod
    def configure(cls, db_file: Optional[str]) -> None:
        if db_file != cls._db_file:
            cls._db_file = db_file
            cls._instance = None

    @classmethod
    def get_instance(cls) -> Catalog:
        if cls._instance is None:
            cls._instance = Catalog(DocumentStore(cls._db_file or settings.database_file))
        return cls._instance


def _run(coro):
    """Run a catalog coroutine, reporting store failures instead of a traceback."""
    try:
        return asyncio.run(coro)
    except StoreFailure as e:
        logger.error(f"Catalog store failure: {e}")
        console.print(f"[bold red]Database error: {e}[/]")
        raise typer.Exit(code=1)


# --- Typer CLI Application ---
app = typer.Typer(help="Local library catalog CLI")

@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    db: Optional[str] = typer.Option(None, "--db", help="Path to the catalog database file"),
):
    """Global options for the CLI (output mode, database file)."""
    logging.basicConfig(level=settings.log_level)
    if output:
        set_output_mode(output)
    CatalogManager.configure(db)

@app.command("stats")
def cli_stats():
    """Show the number of authors and books."""
    counts = _run(CatalogManager.get_instance().counts())
    print_stats_result(counts.to_dict())

@app.command("authors")
def cli_authors():
    """List authors ordered by family name."""
    authors = _run(CatalogManager.get_instance().list_authors())
    print_author_list(authors)

@app.command("books")
def cli_books():
    """List books ordered by title, with their authors."""
    books = _run(CatalogManager.get_instance().list_books())
    print_book_list(books)


async def _populate(catalog: Catalog, data: Dict[str, Any]) -> Dict[str, Any]:
    """Create the seed authors, then the books that reference them by position."""
    report: Dict[str, Any] = {"authors": 0, "books": 0, "rejected": []}

    candidates: List[Author] = []
    positions: List[int] = []
    for pos, raw in enumerate(data.get("authors", [])):
        result = validate_author(raw)
        if not result.ok:
            report["rejected"].append({"author": pos, "errors": [e.message for e in result.errors]})
            continue
        candidates.append(Author.from_form(result.values))
        positions.append(pos)
    created = await asyncio.gather(*(catalog.create_author(a) for a in candidates))
    author_ids = {pos: author.id for pos, author in zip(positions, created)}
    report["authors"] = len(created)

    books: List[Book] = []
    for pos, raw in enumerate(data.get("books", [])):
        values = dict(raw)
        ref = values.get("author")
        if isinstance(ref, int):
            values["author"] = author_ids.get(ref, "")
        result = validate_book(values)
        if not result.ok:
            report["rejected"].append({"book": pos, "errors": [e.message for e in result.errors]})
            continue
        books.append(Book.from_form(result.values))
    saved = await asyncio.gather(*(catalog.create_book(b) for b in books))
    report["books"] = len(saved)
    return report

@app.command("populate")
def cli_populate(file_path: str = typer.Argument(..., help="JSON file with 'authors' and 'books' arrays")):
    """Seed the catalog from a JSON file. A book's 'author' may be an index into 'authors'."""
    path = Path(file_path)
    if not path.exists():
        print(f"File not found: {file_path}")
        raise typer.Exit(code=1)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"Invalid JSON in {file_path}: {e}")
        raise typer.Exit(code=1)

    report = _run(_populate(CatalogManager.get_instance(), data))
    print(f"Created {report['authors']} author(s) and {report['books']} book(s).")
    for item in report["rejected"]:
        kind = "author" if "author" in item else "book"
        print(f"Skipped {kind} #{item[kind]}: {'; '.join(item['errors'])}")

@app.command("serve")
def cli_serve(open_browser: bool = typer.Option(True, "--open/--no-open", help="Open the catalog in a browser")):
    """Start the catalog web service with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}{settings.catalog_prefix}"
    print(f"Starting catalog on {url}")
    env = dict(os.environ)
    if CatalogManager._db_file:
        env["LIBRARY_DB_FILE"] = CatalogManager._db_file
    if open_browser:
        try:
            webbrowser.open(url)
        except webbrowser.Error:
            logger.warning("Could not open a browser")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    if settings.debug:
        args.append("--reload")
    subprocess.run(args, env=env)


if __name__ == "__main__":
    app()
