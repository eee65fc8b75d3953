"""Command-line interface."""

from authz_provision.cli.app import app

__all__ = ["app"]
