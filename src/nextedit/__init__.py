"""AI next-edit suggestions: classify, resolve, preview and apply."""

__version__ = "0.1.0"

__all__ = ["__version__"]
