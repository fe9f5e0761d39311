"""WattWatch: residential energy monitoring backend."""

__version__ = "0.4.0"
