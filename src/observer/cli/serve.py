"""CLI command for running a cache peer.

Usage:
    observer serve
    observer serve --port 8080 --self http://10.0.0.1:8080
    observer serve --peers http://10.0.0.1:8080,http://10.0.0.2:8080
"""

from __future__ import annotations

import os

import typer

app = typer.Typer(help="Run an Observer peer")


@app.callback(invoke_without_command=True)
def serve(
    host: str | None = typer.Option(
        None,
        "--host",
        "-h",
        help="Host to bind to (default: OBSERVER_HOST or 0.0.0.0)",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to listen on (default: OBSERVER_PORT or 8080)",
    ),
    self_url: str | None = typer.Option(
        None,
        "--self",
        help="Base URL other peers use to reach this instance (CACHE_SELF)",
    ),
    peers: str | None = typer.Option(
        None,
        "--peers",
        help="Comma-separated base URLs of all peers (CACHE_PEERS)",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
    access_log: bool = typer.Option(
        True,
        "--access-log/--no-access-log",
        help="Enable/disable access logging",
    ),
) -> None:
    """Run an Observer peer.

    Starts the uvicorn server with the FastAPI application. A peer is a
    single process: the cache lives in memory, so worker processes would
    split it.
    """
    import uvicorn

    from observer.config import Settings

    settings = Settings()
    if host is None:
        host = settings.host
    if port is None:
        port = settings.port

    # Settings are read from the environment by the application factory
    if self_url is not None:
        os.environ["CACHE_SELF"] = self_url
    elif "CACHE_SELF" not in os.environ:
        os.environ["CACHE_SELF"] = f"http://localhost:{port}"
    if peers is not None:
        os.environ["CACHE_PEERS"] = peers

    typer.echo("Starting Observer peer...")
    typer.echo(f"  Host: {host}")
    typer.echo(f"  Port: {port}")
    typer.echo(f"  Self: {os.environ['CACHE_SELF']}")
    typer.echo(f"  Peers: {os.environ.get('CACHE_PEERS', '(none)')}")
    typer.echo(f"  Log level: {log_level}")
    if reload:
        typer.echo("  Reload: enabled")
    typer.echo()
    typer.echo(f"API documentation: http://{host}:{port}/docs")
    typer.echo()

    uvicorn.run(
        app="observer.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
        access_log=access_log,
    )
