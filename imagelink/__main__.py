"""Entry point for `python -m imagelink`."""

from imagelink.cli.commands import app

if __name__ == "__main__":
    app()
