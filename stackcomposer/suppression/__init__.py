"""Policy suppression metadata attached alongside a finalized graph."""

from stackcomposer.suppression.registry import SuppressionRegistry

__all__ = ["SuppressionRegistry"]
