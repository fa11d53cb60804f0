from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import typer
from rich.console import Console
from rich.table import Table

from ..core import config as config_module
from ..core.logging import setup_logging
from ..db.engine import reset_engine

app = typer.Typer(add_completion=False, help="markembed CLI")
db_app = typer.Typer(help="Database commands")
app.add_typer(db_app, name="db")
console = Console()


@app.callback()
def _init(
    config_file: Optional[str] = typer.Option(None, "--config", help="Path to a .markembed.{yaml,toml} file"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json|plain|auto"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="debug|info|warning|error"),
) -> None:
    config_module.SETTINGS = config_module.Settings.load_config(config_file)
    reset_engine()
    settings = config_module.SETTINGS
    try:
        setup_logging(log_format or settings.LOG_FORMAT, log_level or settings.LOG_LEVEL)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(2) from e


@app.command()
def version() -> None:
    from .. import __version__

    typer.echo(__version__)


@app.command()
def config(
    mask_secrets: bool = typer.Option(True, help="Mask secrets in output"),
) -> None:
    for k, v in config_module.SETTINGS.model_dump().items():
        if mask_secrets and ("KEY" in k or "DB_URL" in k) and v:
            v = "***"
        typer.echo(f"{k}={v}")


@app.command()
def ingest(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to ingest"),
    project: str = typer.Option(..., "--project", "-p", help="Project id owning the files"),
    provider: Optional[str] = typer.Option(None, "--provider", help="Embedding provider (openai|dummy)"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="MARKEMBED_BYO_OPENAI_KEY", help="Per-run OpenAI key"),
) -> None:
    """Embed files and store their sections."""
    from ..db.stores import SqlSectionStore, SqlUsageCounter
    from ..pipeline.ingest import ingest_path
    from ..pipeline.steps.embed.provider import get_embedding_provider

    settings = config_module.SETTINGS
    try:
        embedder = get_embedding_provider(provider, settings)
        store = SqlSectionStore()
        counter = SqlUsageCounter()
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1) from e

    results = []
    for file in files:
        results.append(
            ingest_path(
                file,
                project,
                provider=embedder,
                store=store,
                counter=counter,
                api_key=api_key,
                settings=settings,
            )
        )

    table = Table(title="Ingestion summary")
    table.add_column("File")
    table.add_column("Sections", justify="right")
    table.add_column("Embedded", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Errors", justify="right")
    for result in results:
        table.add_row(
            result.path,
            str(result.sections),
            str(result.embedded),
            str(result.total_tokens),
            str(len(result.errors)),
        )
    console.print(table)

    errors = [error for result in results for error in result.errors]
    for error in errors:
        console.print(f"[red]{error.path}[/red]: {error.message}")

    ok = sum(1 for result in results if result.ok)
    console.print(f"{ok} of {len(results)} files ingested without errors")
    if ok == 0 and results:
        raise typer.Exit(1)


@db_app.command("init")
def db_init_cmd() -> None:
    """Initialize database schema (safe if tables already exist)."""
    from ..db.engine import create_tables, get_db_url, initialize_postgres_extensions

    try:
        db_url = get_db_url()
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1) from e

    # Mask credentials for display
    parsed_url = urlparse(db_url)
    safe_url = db_url.replace(parsed_url.password, "***") if parsed_url.password else db_url
    typer.echo(f"Initializing database: {safe_url}")

    try:
        initialize_postgres_extensions()
        create_tables()
        typer.echo("✅ Database schema initialized successfully")
    except Exception as e:
        typer.echo(f"❌ Error initializing database: {e}", err=True)
        raise typer.Exit(1) from e


@db_app.command("check")
def db_check_cmd() -> None:
    """Check database connectivity."""
    from ..db.engine import check_db_health

    try:
        health = check_db_health()
    except Exception as e:
        typer.echo(f"❌ Database check failed: {e}", err=True)
        raise typer.Exit(1) from e

    for key, value in health.items():
        typer.echo(f"{key}: {value}")
    if health["dialect"] == "postgresql" and not health["pgvector"]:
        typer.echo("⚠️  pgvector extension not detected; run 'markembed db init'")


if __name__ == "__main__":
    app()
