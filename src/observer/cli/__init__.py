"""CLI commands for Observer.

Provides command-line interface using Typer:
- observer serve: Run the document service and cache peer

Usage:
    observer --help
    observer serve --port 8080
"""

import typer

from observer.cli.serve import app as serve_app

# Main CLI application
app = typer.Typer(
    name="observer",
    help="Observer: document service with a distributed read-through cache",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")


@app.callback()
def callback() -> None:
    """Observer: document service with a distributed read-through cache."""


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
