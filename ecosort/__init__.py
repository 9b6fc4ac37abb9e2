"""EcoSort: community waste sorting rewards backend."""

__version__ = "1.0.0"
