"""Declarative, bit-exact packet layouts with field access, sizing and building."""

__version__ = "0.1.0"