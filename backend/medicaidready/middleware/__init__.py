"""HTTP middleware."""

from medicaidready.middleware.perimeter import PerimeterMiddleware

__all__ = ["PerimeterMiddleware"]
