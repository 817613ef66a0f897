"""Base exception for the engine."""


class GFLError(RuntimeError):
    """Raised when an engine operation cannot be completed."""


__all__ = ["GFLError"]
