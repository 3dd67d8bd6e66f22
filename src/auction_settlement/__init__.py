"""Post-sale settlement for an equipment auction marketplace."""

__version__ = "0.1.0"
