"""Entry point for `python -m stackcomposer`.

Usage:
    python -m stackcomposer compose manifest.json
    uv run python -m stackcomposer graph manifest.json
"""

from __future__ import annotations

from stackcomposer.cli import cli

cli()
