"""
Exception hierarchy for fractal rendering.
"""


class FractalError(Exception):
    """Base class for all fractal-explorer errors."""


class InvalidConfigurationError(FractalError, ValueError):
    """Raised when a render configuration violates its preconditions."""


class BackendUnavailableError(FractalError, RuntimeError):
    """Raised when a requested rendering backend cannot be used."""
