"""Compile LESS style sheets to CSS, once or on every change."""

__version__ = "0.3.0"
