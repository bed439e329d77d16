"""Command line interface.

Modules:
    main: Typer application and commands
    config: YAML and environment configuration
    reporter: Rich rendering of previews, reports and analyses
"""

from __future__ import annotations

__all__ = ["config", "main", "reporter"]
