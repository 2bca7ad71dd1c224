"""stackcomposer: composition and dependency resolution for web application
deployments."""

__version__ = "0.1.0"
