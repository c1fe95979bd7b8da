"""Main entry point for the Observer CLI.

Usage:
    python -m observer.main --help
    observer --help  # If installed via pip/uv
"""

from observer.cli import main

if __name__ == "__main__":
    main()
