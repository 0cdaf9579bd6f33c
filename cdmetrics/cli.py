"""
cdmetrics CLI tool.

Command-line interface for the metrics exporter.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

app = typer.Typer(help="cdmetrics - Prometheus exporter for application delivery metrics")
console = Console()


def setup_logging(level: str, fmt: str, log_file: Optional[str] = None):
    """Configure the root logger with a console and optional file handler."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level.upper())


def _load(config: Optional[Path]):
    from cdmetrics.config import load_config

    if config is not None and not config.exists():
        console.print(f"[red]Error: Config file not found: {config}[/red]")
        console.print("Run 'cdmetrics init' to create a default config")
        raise typer.Exit(1)
    try:
        return load_config(str(config) if config else None)
    except ValidationError as e:
        console.print(f"[red]Error: Invalid configuration[/red]\n{e}")
        raise typer.Exit(1)


def _build_store(manifests: List[str], verbose: bool = True):
    from cdmetrics.store import InMemoryApplicationStore

    store = InMemoryApplicationStore()
    for path in manifests:
        if not Path(path).exists():
            console.print(f"[red]Error: Manifest file not found: {path}[/red]")
            raise typer.Exit(1)
        count = store.load_manifests(path)
        if verbose:
            console.print(f"   Loaded {count} applications from {path}")
    return store


@app.command()
def serve(
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    host: Optional[str] = typer.Option(None, "--host", help="Host to bind to"),
    port: Optional[int] = typer.Option(None, "--port", help="Port to bind to"),
    manifests: List[str] = typer.Option([], "--manifests", "-m", help="Application manifests to preload"),
):
    """Start the metrics server."""
    cfg = _load(config)
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port

    setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)

    console.print("[bold green]📊 Starting cdmetrics...[/bold green]")
    store = _build_store(cfg.store.manifests + manifests)

    from cdmetrics.metrics import MetricsServer

    server = MetricsServer(
        cfg.address,
        store,
        health_check=lambda: None,
        prefix=cfg.metrics.prefix,
        metrics_path=cfg.server.metrics_path,
        healthz_path=cfg.server.healthz_path,
        include_process_metrics=cfg.metrics.include_process_metrics,
        cluster_info_interval=cfg.metrics.cluster_info_interval_seconds,
        created_series=cfg.metrics.created_series,
    )

    console.print(f"   Metrics: http://{cfg.server.host}:{cfg.server.port}{cfg.server.metrics_path}")
    console.print(f"   Health:  http://{cfg.server.host}:{cfg.server.port}{cfg.server.healthz_path}")
    console.print("Press Ctrl+C to stop")

    try:
        server.serve()
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    finally:
        server.stop()


@app.command()
def render(
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    manifests: List[str] = typer.Option([], "--manifests", "-m", help="Application manifests to load"),
):
    """Print one scrape of the application metrics."""
    cfg = _load(config)

    from prometheus_client import generate_latest
    from cdmetrics.metrics import new_app_registry

    store = _build_store(cfg.store.manifests + manifests, verbose=False)
    registry = new_app_registry(store, prefix=cfg.metrics.prefix)
    typer.echo(generate_latest(registry).decode("utf-8"), nl=False)


@app.command()
def init(
    output: Path = typer.Option("cdmetrics.yaml", help="Output config file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing file"),
):
    """Create a default config file."""
    from cdmetrics.config import default_config_yaml

    if output.exists() and not force:
        console.print(f"[yellow]Config file already exists: {output}[/yellow]")
        console.print("Use --force to overwrite")
        raise typer.Exit(1)

    output.write_text(default_config_yaml())
    console.print(f"[green]✓ Created {output}[/green]")
    console.print("\nNext steps:")
    console.print(f"1. Edit {output} with your settings")
    console.print("2. Run: cdmetrics serve")


def main():
    app()


if __name__ == "__main__":
    main()
