"""relay command line interface."""

from relay.cli.app import app

__all__ = ["app"]
