"""Version information for hetdsge."""

__version__ = "0.1.0"
