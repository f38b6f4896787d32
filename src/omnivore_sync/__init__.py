"""Omnivore to outline store synchronisation."""

__version__ = "0.4.0"
