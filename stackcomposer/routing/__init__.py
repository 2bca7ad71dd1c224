"""Routing between a content distribution and backend API endpoints."""

from stackcomposer.routing.binder import RoutingBinder, normalize_path_prefix

__all__ = ["RoutingBinder", "normalize_path_prefix"]
