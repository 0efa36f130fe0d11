"""Bitly Stats Sync - scheduled collection of Bitly click statistics."""

__version__ = "0.1.0"
