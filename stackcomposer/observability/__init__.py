"""Observability for stackcomposer: structured logging and Prometheus metrics."""
