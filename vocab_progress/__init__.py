"""Spaced-repetition progress engine for vocabulary practice."""

__version__ = "0.1.0"
