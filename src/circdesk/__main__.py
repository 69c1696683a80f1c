"""Main entry point for the circdesk package."""

from circdesk.cli import app


if __name__ == "__main__":
    app()
