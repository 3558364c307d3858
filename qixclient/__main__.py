"""Entry point for `python -m qixclient`."""

from qixclient.cli.commands import app

if __name__ == "__main__":
    app()
