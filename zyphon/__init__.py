"""Zyphon - API-key gateway for AI generation capabilities."""

__version__ = "0.1.0"
