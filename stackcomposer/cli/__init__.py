"""stackcomposer command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``stackcomposer`` script).
"""

from stackcomposer.cli.main import cli

__all__ = ["cli"]
