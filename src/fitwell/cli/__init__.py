"""CLI package."""

from fitwell.cli.app import app

__all__ = ["app"]
