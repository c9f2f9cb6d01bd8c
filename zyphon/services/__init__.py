"""Zyphon services."""
