"""Motor speed simulation coordinated through a shared command log."""

__version__ = "0.1.0"
