"""
Command Line Interface for Achievement Tracker.
"""

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.base import create_store_engine, init_databases

app = typer.Typer(help="Achievement Tracker - student achievement lifecycle service")
console = Console()


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode with reload"),
):
    """Start the Achievement Tracker API server."""
    from ..main import run

    settings = get_settings()
    rprint(Panel.fit("🎓 Starting Achievement Tracker", style="bold blue"))
    console.print(f"🚀 Serving on http://{host or settings.api_host}:{port or settings.api_port}")
    run(host=host, port=port, reload=dev or None)


@app.command("init-db")
def init_db():
    """Create the tables of both stores."""
    settings = get_settings()
    init_databases(
        create_store_engine(settings.reference_database_url),
        create_store_engine(settings.content_database_url),
    )
    console.print("✅ Reference store schema ready")
    console.print("✅ Content store schema ready")


@app.command("find-orphans")
def find_orphans():
    """List content documents that no reference points at."""
    from ..api import build_coordinator

    coordinator = build_coordinator(get_settings(), create_schema=False)
    orphans = coordinator.find_orphan_content()

    if not orphans:
        console.print("✅ No orphan content found")
        return

    table = Table(title="Orphan Content", show_header=True, header_style="bold magenta")
    table.add_column("Content ID", style="cyan")
    table.add_column("Student ID")
    table.add_column("Title")
    for content_id in orphans:
        content = coordinator.contents.get(content_id)
        table.add_row(
            content_id,
            content.student_id if content else "-",
            content.title if content else "-",
        )

    console.print(table)
    console.print(f"🟠 {len(orphans)} orphan document(s) require reconciliation")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
