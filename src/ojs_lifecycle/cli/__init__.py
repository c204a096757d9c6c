"""
ojs-lifecycle CLI package.

Entry point: ``ojs-lifecycle`` (see ``pyproject.toml [project.scripts]``).
"""

from ojs_lifecycle.cli.app import app

__all__ = ["app"]
