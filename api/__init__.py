"""Local HTTP API driving a selection session."""

__version__ = "0.3.0"

__all__ = ["__version__"]
