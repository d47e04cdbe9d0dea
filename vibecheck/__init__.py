"""Conversational feasibility checker for product ideas."""

__version__ = "0.1.0"
