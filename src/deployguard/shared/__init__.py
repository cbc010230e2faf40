"""Shared cross-layer utilities."""
