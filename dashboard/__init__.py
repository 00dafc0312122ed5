"""Backend for the Shlink dashboard."""

__version__ = "0.1.0"
